"""Pydantic model for the structured outcome of an apply run."""

from enum import Enum
from typing import List, Dict, Optional
from pydantic import BaseModel, Field
from .plan import OperationKind


class OperationStatus(str, Enum):
    """Per-operation state within a single run."""
    PENDING = "Pending"
    APPLYING = "Applying"
    APPLIED = "Applied"
    UNCHANGED = "Unchanged"
    DELETED = "Deleted"
    FAILED = "Failed"
    BLOCKED = "Blocked"
    CANCELLED = "Cancelled"


SUCCESS_STATUSES = {OperationStatus.APPLIED, OperationStatus.UNCHANGED, OperationStatus.DELETED}


class RunOutcome(str, Enum):
    """Terminal outcome of a run."""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class OperationResult(BaseModel):
    """What happened to one planned operation."""
    key: str = Field(..., description="Operation key within the plan")
    declaration_id: str = Field(..., description="Declaration the operation targeted")
    kind: OperationKind = Field(..., description="Operation kind")
    status: OperationStatus = Field(..., description="Terminal status for this run")
    attempts: int = Field(default=0, ge=0, description="Provider calls made, including retries")
    error: Optional[str] = Field(default=None, description="Failure cause")
    blocked_by: Optional[str] = Field(default=None, description="Declaration whose failure blocked this one")
    provider_id: Optional[str] = Field(default=None, description="Provider identifier after the operation")


class RunResult(BaseModel):
    """Structured summary of a reconciliation run."""
    outcome: RunOutcome = Field(..., description="SUCCESS, FAILED or CANCELLED")
    results: List[OperationResult] = Field(default_factory=list, description="Per-operation results in plan order")

    def counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in OperationStatus if status not in (OperationStatus.PENDING, OperationStatus.APPLYING)}
        for result in self.results:
            counts[result.status.value] = counts.get(result.status.value, 0) + 1
        return counts

    def with_status(self, status: OperationStatus) -> List[OperationResult]:
        return [r for r in self.results if r.status == status]

    @property
    def failures(self) -> List[OperationResult]:
        return self.with_status(OperationStatus.FAILED)

    @property
    def blocked(self) -> List[OperationResult]:
        return self.with_status(OperationStatus.BLOCKED)

    def get(self, declaration_id: str) -> Optional[OperationResult]:
        """Last result recorded for a declaration (a replace yields two)."""
        found = None
        for result in self.results:
            if result.declaration_id == declaration_id:
                found = result
        return found

    def blocking_chains(self) -> Dict[str, List[str]]:
        """Failed declaration id -> declaration ids it blocked."""
        chains: Dict[str, List[str]] = {r.declaration_id: [] for r in self.failures}
        for result in self.blocked:
            if result.blocked_by is not None:
                chains.setdefault(result.blocked_by, []).append(result.declaration_id)
        return chains
