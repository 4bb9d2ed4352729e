"""Pydantic models for resource declarations and recorded state."""

from enum import Enum
from typing import List, Optional, Dict, Any, Set
from pydantic import BaseModel, ConfigDict, Field


class ResourceType(str, Enum):
    """Closed set of abstract resource kinds."""
    NETWORK = "network"
    SUBNET = "subnet"
    SECURITY_RULE = "security-rule"
    MANAGED_DATABASE = "managed-database"
    COMPUTE_SERVICE = "compute-service"
    LOAD_BALANCER = "load-balancer"
    LISTENER = "listener"
    DNS_RECORD = "dns-record"
    CERTIFICATE = "certificate"
    ALARM = "alarm"
    AUTOSCALING_POLICY = "autoscaling-policy"
    LOG_GROUP = "log-group"
    STORAGE_BUCKET = "storage-bucket"
    BUCKET_POLICY = "bucket-policy"


class Reference(BaseModel):
    """Pointer to another declaration's output attribute."""
    declaration_id: str = Field(..., description="Id of the referenced declaration")
    attribute_path: str = Field(..., description="Dotted path into the referenced declaration's attributes")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def parse(cls, expression: str) -> "Reference":
        """Parse an ``<id>.<attribute.path>`` expression."""
        declaration_id, sep, attribute_path = expression.strip().partition(".")
        if not sep or not declaration_id or not attribute_path:
            raise ValueError(f"Reference must look like '<id>.<attribute>', got '{expression}'")
        return cls(declaration_id=declaration_id, attribute_path=attribute_path)

    @property
    def root_attribute(self) -> str:
        return self.attribute_path.split(".", 1)[0]

    def __str__(self) -> str:
        return f"{self.declaration_id}.{self.attribute_path}"


def iter_references(value: Any):
    """Yield every Reference nested anywhere inside a spec value."""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, dict):
        for key in sorted(value):
            yield from iter_references(value[key])
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_references(item)


class ResourceDeclaration(BaseModel):
    """A single desired resource, independent of provider schema."""
    id: str = Field(..., description="Stable logical name, unique within a declaration set")
    type: ResourceType = Field(..., description="Resource kind")
    spec: Dict[str, Any] = Field(default_factory=dict, description="Attribute values or references")
    depends_on: List[str] = Field(default_factory=list, description="Explicit predecessor declaration ids")

    def references(self) -> List[Reference]:
        """All references in the spec, in deterministic order."""
        return list(iter_references(self.spec))

    def reference_ids(self) -> Set[str]:
        """Ids of declarations whose attributes this spec reads."""
        return {ref.declaration_id for ref in self.references()}

    def dependency_ids(self) -> Set[str]:
        """Ids this declaration must be ordered after (references + explicit)."""
        return self.reference_ids() | set(self.depends_on)


class RecordStatus(str, Enum):
    """Persisted status of a declaration."""
    PENDING = "Pending"
    APPLIED = "Applied"
    FAILED = "Failed"
    DESTROYED = "Destroyed"


class StateRecord(BaseModel):
    """Last known state of one declaration."""
    declaration_id: str = Field(..., description="Declaration id this record belongs to")
    resource_type: str = Field(..., description="Resource type at the time of the last operation")
    status: RecordStatus = Field(default=RecordStatus.PENDING, description="Persisted status")
    last_applied_spec_hash: Optional[str] = Field(default=None, description="Hash of the last applied resolved spec")
    provider_assigned_id: Optional[str] = Field(default=None, description="Identifier assigned by the provider")
    resolved_attributes: Dict[str, Any] = Field(default_factory=dict, description="Output attributes reported by the provider")
    dependencies: List[str] = Field(default_factory=list, description="Declaration ids depended on when last applied")
    updated_at: Optional[str] = Field(default=None, description="ISO timestamp of the last write")
    last_error: Optional[str] = Field(default=None, description="Cause of the last failure, if any")

    @property
    def is_applied(self) -> bool:
        return self.status == RecordStatus.APPLIED
