from .models import ResourceType, Reference, ResourceDeclaration, RecordStatus, StateRecord, iter_references
from .references import resolve_spec, spec_hash, lookup_attribute, encode_spec
from .schema import RESOURCE_SCHEMAS, required_inputs, output_attributes
from .validator import validate_declarations

__all__ = [
    "ResourceType",
    "Reference",
    "ResourceDeclaration",
    "RecordStatus",
    "StateRecord",
    "iter_references",
    "resolve_spec",
    "spec_hash",
    "lookup_attribute",
    "encode_spec",
    "RESOURCE_SCHEMAS",
    "required_inputs",
    "output_attributes",
    "validate_declarations",
]
