from .store import StateStore, MemoryStateStore, JsonFileStateStore, STATE_FORMAT_VERSION

__all__ = ["StateStore", "MemoryStateStore", "JsonFileStateStore", "STATE_FORMAT_VERSION"]
