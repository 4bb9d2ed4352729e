"""Pydantic model for the ordered, executable plan."""

from collections import deque
from enum import Enum
from typing import List, Dict, Optional, Iterable, Set
from pydantic import BaseModel, Field
from ..model.models import ResourceDeclaration
from ..model.references import encode_spec


class OperationKind(str, Enum):
    """Operation kinds a plan can contain."""
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"


class Operation(BaseModel):
    """One planned change to one declaration."""
    kind: OperationKind = Field(..., description="Create, Update or Delete")
    declaration_id: str = Field(..., description="Declaration the operation targets")
    resource_type: str = Field(..., description="Resource type the provider is called with")
    reason: str = Field(default="", description="Why the planner emitted this operation")
    after: List[str] = Field(default_factory=list, description="Keys of operations that must complete first")
    conditional: bool = Field(default=False, description="Update only if the resolved spec hash changed")

    @property
    def key(self) -> str:
        """Unique key within a plan (a replaced resource has both a delete and a create)."""
        return f"{self.kind.value.lower()}:{self.declaration_id}"


class Plan(BaseModel):
    """Ordered sequence of operations plus the declarations they were computed from."""
    operations: List[Operation] = Field(default_factory=list, description="Operations in a valid execution order")
    declarations: Dict[str, ResourceDeclaration] = Field(default_factory=dict, description="Desired declarations by id")

    @property
    def is_empty(self) -> bool:
        return not self.operations

    def keys(self) -> List[str]:
        return [op.key for op in self.operations]

    def get(self, key: str) -> Optional[Operation]:
        for op in self.operations:
            if op.key == key:
                return op
        return None

    def index_of(self, declaration_id: str, kind: Optional[OperationKind] = None) -> int:
        """Position of the first operation on a declaration (optionally of one kind), or -1."""
        for index, op in enumerate(self.operations):
            if op.declaration_id == declaration_id and (kind is None or op.kind == kind):
                return index
        return -1

    def counts(self) -> Dict[str, int]:
        counts = {kind.value: 0 for kind in OperationKind}
        for op in self.operations:
            counts[op.kind.value] += 1
        return counts

    def dependents(self) -> Dict[str, List[str]]:
        """Reverse of ``after``: operation key -> keys waiting on it."""
        waiting: Dict[str, List[str]] = {op.key: [] for op in self.operations}
        for op in self.operations:
            for prerequisite in op.after:
                waiting.setdefault(prerequisite, []).append(op.key)
        return waiting

    def blocked_by(self, failed_keys: Iterable[str]) -> Set[str]:
        """Keys of every operation transitively waiting on one of the failed operations."""
        waiting = self.dependents()
        failed = set(failed_keys)
        blocked: Set[str] = set()
        queue = deque(failed)
        while queue:
            key = queue.popleft()
            for dependent in waiting.get(key, []):
                if dependent not in blocked and dependent not in failed:
                    blocked.add(dependent)
                    queue.append(dependent)
        return blocked

    def to_dict(self) -> Dict:
        """JSON-safe rendering with references kept symbolic."""
        return {
            "operations": [op.model_dump(mode="json") for op in self.operations],
            "counts": self.counts(),
            "declarations": {
                decl_id: {
                    "type": decl.type.value,
                    "spec": encode_spec(decl.spec),
                    "depends_on": list(decl.depends_on),
                }
                for decl_id, decl in sorted(self.declarations.items())
            },
        }
