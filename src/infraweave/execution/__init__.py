from .executor import Reconciler, ApplyOptions, apply
from .drift import detect_drift, refresh_state, DriftReport, DriftEntry, DriftStatus

__all__ = [
    "Reconciler",
    "ApplyOptions",
    "apply",
    "detect_drift",
    "refresh_state",
    "DriftReport",
    "DriftEntry",
    "DriftStatus",
]
