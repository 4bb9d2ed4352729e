"""Report generation module - machine-readable output for plans and runs."""

from .artifact import generate_artifacts, write_plan, run_summary

__all__ = ["generate_artifacts", "write_plan", "run_summary"]
