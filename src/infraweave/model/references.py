"""Reference resolution and spec hashing."""

import hashlib
import json
from typing import Any, Dict, Mapping
from .models import Reference
from ..utils.errors import ResolutionError


def lookup_attribute(attributes: Mapping[str, Any], attribute_path: str) -> Any:
    """Walk a dotted path through nested mappings and lists."""
    current: Any = attributes
    for segment in attribute_path.split("."):
        if isinstance(current, Mapping) and segment in current:
            current = current[segment]
        elif isinstance(current, (list, tuple)) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            raise KeyError(segment)
    return current


def resolve_value(value: Any, attributes_by_id: Mapping[str, Mapping[str, Any]]) -> Any:
    """Return a copy of value with every Reference replaced by its attribute value."""
    if isinstance(value, Reference):
        if value.declaration_id not in attributes_by_id:
            raise ResolutionError(f"Reference {value} points to a declaration that is not applied")
        try:
            return lookup_attribute(attributes_by_id[value.declaration_id], value.attribute_path)
        except KeyError:
            raise ResolutionError(
                f"Reference {value} cannot be resolved: attribute missing from '{value.declaration_id}'"
            )
    if isinstance(value, dict):
        return {key: resolve_value(item, attributes_by_id) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [resolve_value(item, attributes_by_id) for item in value]
    return value


def resolve_spec(spec: Dict[str, Any], attributes_by_id: Mapping[str, Mapping[str, Any]]) -> Dict[str, Any]:
    """Resolve all references in a spec against applied attributes."""
    return resolve_value(spec, attributes_by_id)


def spec_hash(resource_type: str, resolved_spec: Dict[str, Any]) -> str:
    """Stable sha256 of a resolved spec and its type."""
    payload = {"type": str(getattr(resource_type, "value", resource_type)), "spec": resolved_spec}
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def encode_spec(value: Any) -> Any:
    """Render a spec for JSON output, keeping references symbolic as {"$ref": "id.attr"}."""
    if isinstance(value, Reference):
        return {"$ref": str(value)}
    if isinstance(value, dict):
        return {key: encode_spec(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_spec(item) for item in value]
    return value
