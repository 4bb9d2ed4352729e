from .planner import plan

__all__ = ["plan"]
