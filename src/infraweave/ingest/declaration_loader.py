"""Load declaration files (YAML or JSON) into raw declarations."""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Iterable
import yaml
from pydantic import BaseModel, Field
from ..model.models import Reference
from ..utils.errors import DeclarationLoadError
from ..utils.logging import get_logger

logger = get_logger("ingest.declaration_loader")

ENV_VAR_PREFIX = "INFRAWEAVE_VAR_"


class ParameterRef:
    """Placeholder for a named parameter, substituted after parsing."""

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"ParameterRef({self.name!r})"


class DeclarationDocument(BaseModel):
    """A parsed declaration file with parameters already substituted."""
    source: str = Field(..., description="Path the document was loaded from")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Effective parameter values")
    resources: List[Any] = Field(default_factory=list, description="Raw declarations for validation")


class _DeclarationYamlLoader(yaml.SafeLoader):
    """SafeLoader that understands !ref and !param."""
    pass


def _construct_ref(loader: yaml.SafeLoader, node: yaml.Node) -> Reference:
    expression = loader.construct_scalar(node)
    try:
        return Reference.parse(expression)
    except ValueError as e:
        raise yaml.constructor.ConstructorError(None, None, str(e), node.start_mark)


def _construct_param(loader: yaml.SafeLoader, node: yaml.Node) -> ParameterRef:
    return ParameterRef(loader.construct_scalar(node).strip())


_DeclarationYamlLoader.add_constructor("!ref", _construct_ref)
_DeclarationYamlLoader.add_constructor("!param", _construct_param)


def _convert_markers(value: Any) -> Any:
    """Turn {"$ref": "id.attr"} and {"$param": "name"} mappings into typed values."""
    if isinstance(value, dict):
        if len(value) == 1 and "$ref" in value:
            try:
                return Reference.parse(str(value["$ref"]))
            except ValueError as e:
                raise DeclarationLoadError(str(e))
        if len(value) == 1 and "$param" in value:
            return ParameterRef(str(value["$param"]))
        return {key: _convert_markers(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_convert_markers(item) for item in value]
    return value


def _substitute(value: Any, parameters: Dict[str, Any], where: str) -> Any:
    if isinstance(value, ParameterRef):
        if value.name not in parameters:
            raise DeclarationLoadError(
                f"Undefined parameter '{value.name}' used in {where}. "
                f"Declare it under 'parameters:' or pass --var {value.name}=..."
            )
        return parameters[value.name]
    if isinstance(value, dict):
        return {key: _substitute(item, parameters, where) for key, item in value.items()}
    if isinstance(value, list):
        return [_substitute(item, parameters, where) for item in value]
    return value


def parse_var_overrides(assignments: Iterable[str]) -> Dict[str, Any]:
    """
    Parse ``name=value`` strings; values are read as YAML scalars so ``2`` is an int.

    Raises:
        DeclarationLoadError: If an assignment has no '='
    """
    overrides = {}
    for assignment in assignments or []:
        name, sep, raw = assignment.partition("=")
        if not sep or not name.strip():
            raise DeclarationLoadError(f"Invalid variable assignment '{assignment}' (expected name=value)")
        try:
            overrides[name.strip()] = yaml.safe_load(raw) if raw != "" else ""
        except yaml.YAMLError:
            overrides[name.strip()] = raw
    return overrides


def _env_overrides() -> Dict[str, Any]:
    return parse_var_overrides(
        f"{key[len(ENV_VAR_PREFIX):]}={value}"
        for key, value in os.environ.items()
        if key.startswith(ENV_VAR_PREFIX) and len(key) > len(ENV_VAR_PREFIX)
    )


def _read_document(path: Path) -> Any:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() == ".json":
                return _convert_markers(json.load(f))
            return _convert_markers(yaml.load(f, Loader=_DeclarationYamlLoader))
    except json.JSONDecodeError as e:
        raise DeclarationLoadError(f"Invalid JSON in declaration file {path}: {e}")
    except yaml.YAMLError as e:
        raise DeclarationLoadError(f"Invalid YAML in declaration file {path}: {e}")
    except OSError as e:
        raise DeclarationLoadError(f"Error reading declaration file {path}: {e}")


def load_declarations(path: str, overrides: Optional[Dict[str, Any]] = None) -> DeclarationDocument:
    """
    Load a declaration file and substitute parameters.

    Parameter precedence: file defaults, then INFRAWEAVE_VAR_<name>
    environment variables, then explicit overrides. Both plan and apply go
    through this function, so they always see the same values.

    Args:
        path: YAML (.yaml/.yml) or JSON (.json) file
        overrides: Parameter values that win over file defaults

    Returns:
        DeclarationDocument with raw resources ready for validation

    Raises:
        DeclarationLoadError: If the file is missing, malformed or uses an undefined parameter
    """
    doc_path = Path(path)
    if not doc_path.exists():
        raise DeclarationLoadError(f"Declaration file not found: {path}")
    if not doc_path.is_file():
        raise DeclarationLoadError(f"Path is not a file: {path}")

    data = _read_document(doc_path)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise DeclarationLoadError("Declaration file must contain a mapping with a 'resources' list")

    defaults = data.get("parameters") or {}
    if not isinstance(defaults, dict):
        raise DeclarationLoadError("'parameters' must be a mapping of name to default value")
    parameters = dict(defaults)
    parameters.update(_env_overrides())
    parameters.update(overrides or {})

    resources = data.get("resources")
    if resources is None:
        logger.warning(f"Declaration file {path} has no 'resources'")
        resources = []
    if not isinstance(resources, list):
        raise DeclarationLoadError("'resources' must be a list")

    substituted = []
    for index, resource in enumerate(resources):
        where = f"resource #{index}"
        if isinstance(resource, dict) and resource.get("id"):
            where = f"resource '{resource['id']}'"
        substituted.append(_substitute(resource, parameters, where))

    logger.info(f"Loaded {len(substituted)} declarations from {path}")
    return DeclarationDocument(source=str(doc_path), parameters=parameters, resources=substituted)
