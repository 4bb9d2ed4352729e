from .plan import Plan, Operation, OperationKind
from .run_result import RunResult, RunOutcome, OperationResult, OperationStatus, SUCCESS_STATUSES

__all__ = [
    "Plan",
    "Operation",
    "OperationKind",
    "RunResult",
    "RunOutcome",
    "OperationResult",
    "OperationStatus",
    "SUCCESS_STATUSES",
]
