"""Diff desired declarations against recorded state into an ordered plan."""

from typing import Dict, List, Mapping, Optional, Set
import networkx as nx
from networkx import NetworkXUnfeasible
from ..contracts.plan import Plan, Operation, OperationKind
from ..graph.dependency_graph import ResourceGraph
from ..model.models import StateRecord, RecordStatus, ResourceDeclaration
from ..model.references import resolve_spec, spec_hash
from ..utils.errors import CycleError, ResolutionError
from ..utils.logging import get_logger

logger = get_logger("planning.planner")


def plan(graph: ResourceGraph, state_records: Mapping[str, StateRecord]) -> Plan:
    """
    Compute the operations needed to move recorded state to the declarations.

    Deletes run dependents before dependencies of the prior graph, and after
    any create or update of a still-declared resource that pointed at them.
    Creates and updates run in dependency order of the current graph.
    Each operation lists the keys of the operations it must wait for.

    Args:
        graph: Acyclic graph of the desired declarations
        state_records: Last known state by declaration id

    Returns:
        Plan (empty when everything is already satisfied)
    """
    records = {
        decl_id: record for decl_id, record in state_records.items()
        if record.status != RecordStatus.DESTROYED
    }

    pending: Dict[str, Operation] = {}
    replaced: Set[str] = set()

    for decl_id in graph.creation_order():
        declaration = graph.get_declaration(decl_id)
        op = _diff_declaration(declaration, records.get(decl_id), pending, records)
        if op is None:
            continue
        if op.reason == "resource type changed":
            replaced.add(decl_id)
            op.after.append(f"delete:{decl_id}")
        for dep in graph.direct_dependencies(decl_id):
            if dep in pending:
                op.after.append(pending[dep].key)
        pending[decl_id] = op

    deletes = _plan_deletes(graph, records, replaced, pending)

    operations = _execution_order(
        deletes + [pending[decl_id] for decl_id in graph.creation_order() if decl_id in pending]
    )
    result = Plan(
        operations=operations,
        declarations={d.id: d for d in graph.get_all_declarations()}
    )

    counts = result.counts()
    logger.info(
        f"Plan computed: {counts['Create']} to create, {counts['Update']} to update, "
        f"{counts['Delete']} to delete"
    )
    return result


def _diff_declaration(
    declaration: ResourceDeclaration,
    record: Optional[StateRecord],
    pending: Dict[str, Operation],
    records: Mapping[str, StateRecord]
) -> Optional[Operation]:
    """Decide the single create/update operation for one declaration, if any."""
    resource_type = declaration.type.value

    def make(kind: OperationKind, reason: str, conditional: bool = False) -> Operation:
        return Operation(
            kind=kind,
            declaration_id=declaration.id,
            resource_type=resource_type,
            reason=reason,
            conditional=conditional
        )

    if record is None:
        return make(OperationKind.CREATE, "new declaration")

    if record.status != RecordStatus.APPLIED:
        if record.provider_assigned_id:
            return make(OperationKind.UPDATE, f"retry after {record.status.value.lower()} operation")
        return make(OperationKind.CREATE, f"retry after {record.status.value.lower()} operation")

    if record.resource_type != resource_type:
        return make(OperationKind.CREATE, "resource type changed")

    changing = sorted(dep for dep in declaration.reference_ids() if dep in pending)
    if changing:
        return make(OperationKind.UPDATE, f"referenced declaration(s) changing: {', '.join(changing)}", conditional=True)

    try:
        attributes = {
            dep: records[dep].resolved_attributes
            for dep in declaration.reference_ids() if dep in records
        }
        resolved = resolve_spec(declaration.spec, attributes)
    except ResolutionError as e:
        logger.warning(f"Cannot resolve '{declaration.id}' from recorded state: {e}")
        return make(OperationKind.UPDATE, "references not resolvable from recorded state")

    if spec_hash(resource_type, resolved) != record.last_applied_spec_hash:
        return make(OperationKind.UPDATE, "spec changed")

    logger.debug(f"No changes for '{declaration.id}'")
    return None


def _plan_deletes(
    graph: ResourceGraph,
    records: Mapping[str, StateRecord],
    replaced: Set[str],
    pending: Dict[str, Operation]
) -> List[Operation]:
    """
    Delete operations in reverse dependency order of the prior graph.

    A delete waits for every operation on its prior-graph dependents: their
    deletes, and the creates/updates of dependents that are still declared,
    so nothing is deleted while a resource still points at it. A wait that
    would close a loop (a dependent waiting on the replacement of the very
    resource being deleted) is dropped.
    """
    targets = {decl_id for decl_id in records if decl_id not in graph.graph} | replaced
    if not targets:
        return []

    prior = ResourceGraph.from_state(records)
    try:
        order = prior.deletion_order()
    except NetworkXUnfeasible:
        raise CycleError(prior.find_cycle() or sorted(targets))

    deletes: Dict[str, Operation] = {}
    for decl_id in order:
        if decl_id not in targets:
            continue
        record = records[decl_id]
        reason = "replaced by new resource type" if decl_id in replaced else "removed from declarations"
        deletes[decl_id] = Operation(
            kind=OperationKind.DELETE,
            declaration_id=decl_id,
            resource_type=record.resource_type,
            reason=reason,
            after=[f"delete:{dep}" for dep in prior.direct_dependents(decl_id) if dep in targets]
        )

    by_key = {op.key: op for op in list(deletes.values()) + list(pending.values())}
    for decl_id, delete_op in deletes.items():
        for dep in prior.direct_dependents(decl_id):
            if dep not in pending:
                continue
            dependent_op = pending[dep]
            if delete_op.key in _prerequisites(dependent_op, by_key):
                logger.debug(f"{delete_op.key} cannot wait for {dependent_op.key}: it already waits on the delete")
                continue
            delete_op.after.append(dependent_op.key)

    return list(deletes.values())


def _prerequisites(op: Operation, by_key: Mapping[str, Operation]) -> Set[str]:
    """Keys the operation transitively waits on."""
    seen: Set[str] = set()
    stack = list(op.after)
    while stack:
        key = stack.pop()
        if key in seen:
            continue
        seen.add(key)
        if key in by_key:
            stack.extend(by_key[key].after)
    return seen


def _execution_order(operations: List[Operation]) -> List[Operation]:
    """Topological order over ``after``; ties keep the proposed order."""
    position = {op.key: index for index, op in enumerate(operations)}
    waits = nx.DiGraph()
    waits.add_nodes_from(position)
    for op in operations:
        for prerequisite in op.after:
            if prerequisite in position:
                waits.add_edge(prerequisite, op.key)
    by_key = {op.key: op for op in operations}
    return [by_key[key] for key in nx.lexicographical_topological_sort(waits, key=position.get)]
