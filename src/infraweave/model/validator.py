"""Validate raw declarations before any graph or provider work."""

import re
from typing import Any, Dict, List, Iterable
from pydantic import ValidationError as PydanticValidationError
from .models import ResourceDeclaration, iter_references
from .schema import is_known_type, required_inputs, output_attributes
from ..utils.errors import ValidationError
from ..utils.logging import get_logger

logger = get_logger("model.validator")

_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_declarations(raw_declarations: Iterable[Any]) -> List[ResourceDeclaration]:
    """
    Validate a raw declaration set and return typed declarations.
    
    Checks, in order: id shape and uniqueness, known type, required inputs,
    then that every reference and explicit dependency names an existing
    declaration (and, for references, a legal output attribute).
    
    Args:
        raw_declarations: Mappings or ResourceDeclaration objects
        
    Returns:
        Declarations in input order
        
    Raises:
        ValidationError: Naming the first offending declaration; all problems
            found are listed in ``problems``
    """
    problems: List[tuple] = []
    declarations: List[ResourceDeclaration] = []
    seen = set()

    for index, raw in enumerate(raw_declarations):
        if isinstance(raw, ResourceDeclaration):
            raw = {"id": raw.id, "type": raw.type.value, "spec": raw.spec, "depends_on": list(raw.depends_on)}
        if not isinstance(raw, dict):
            problems.append((f"#{index}", "declaration must be a mapping"))
            continue

        decl_id = raw.get("id")
        if not isinstance(decl_id, str) or not decl_id:
            problems.append((f"#{index}", "declaration id must be a non-empty string"))
            continue
        if not _ID_PATTERN.match(decl_id):
            problems.append((decl_id, "id may only contain letters, digits, '-' and '_'"))
            continue
        if decl_id in seen:
            problems.append((decl_id, "duplicate declaration id"))
            continue
        seen.add(decl_id)

        resource_type = raw.get("type")
        if not isinstance(resource_type, str) or not is_known_type(resource_type):
            problems.append((decl_id, f"unknown resource type '{resource_type}'"))
            continue

        try:
            declaration = ResourceDeclaration(**raw)
        except PydanticValidationError as e:
            problems.append((decl_id, f"malformed declaration: {e.errors()[0]['msg']}"))
            continue

        missing = [name for name in required_inputs(declaration.type) if name not in declaration.spec]
        if missing:
            problems.append((decl_id, f"missing required attribute(s): {', '.join(missing)}"))
        declarations.append(declaration)

    by_id: Dict[str, ResourceDeclaration] = {d.id: d for d in declarations}
    for declaration in declarations:
        for ref in iter_references(declaration.spec):
            if ref.declaration_id == declaration.id:
                problems.append((declaration.id, f"reference {ref} points to itself"))
                continue
            target = by_id.get(ref.declaration_id)
            if target is None:
                if ref.declaration_id not in seen:
                    problems.append((declaration.id, f"reference {ref} names unknown declaration '{ref.declaration_id}'"))
                continue
            if ref.root_attribute not in output_attributes(target.type):
                problems.append((
                    declaration.id,
                    f"reference {ref}: '{ref.root_attribute}' is not an output of {target.type.value} "
                    f"(expected one of: {', '.join(output_attributes(target.type))})"
                ))
        for dep in declaration.depends_on:
            if dep == declaration.id:
                problems.append((declaration.id, "depends_on lists itself"))
            elif dep not in seen:
                problems.append((declaration.id, f"depends_on names unknown declaration '{dep}'"))

    if problems:
        first_id, first_cause = problems[0]
        raise ValidationError(
            first_id,
            first_cause,
            problems=[f"{decl_id}: {cause}" for decl_id, cause in problems]
        )

    logger.info(f"Validated {len(declarations)} declarations")
    return declarations
