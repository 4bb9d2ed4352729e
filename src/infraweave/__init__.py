"""InfraWeave - Declarative infrastructure provisioning engine."""

import threading
from typing import Any, Dict, Iterable, Optional, Tuple
from .model.validator import validate_declarations
from .graph.dependency_graph import ResourceGraph, build_graph
from .planning.planner import plan
from .execution.executor import ApplyOptions, Reconciler, apply
from .contracts.plan import Plan
from .contracts.run_result import RunResult
from .ingest.declaration_loader import load_declarations
from .providers.base import ProviderCapability
from .state.store import StateStore
from .utils.logging import setup_logging, get_logger

__version__ = "0.1.0"

__all__ = [
    "prepare",
    "plan",
    "apply",
    "plan_file",
    "apply_file",
    "destroy_plan",
    "build_graph",
    "validate_declarations",
    "ApplyOptions",
    "Reconciler",
]

setup_logging()
logger = get_logger("infraweave")


def prepare(raw_declarations: Iterable[Any]) -> ResourceGraph:
    """Validate raw declarations and build their dependency graph."""
    return build_graph(validate_declarations(raw_declarations))


def plan_file(
    declaration_path: str,
    state_store: StateStore,
    overrides: Optional[Dict[str, Any]] = None
) -> Plan:
    """Load a declaration file and plan it against an open state store."""
    logger.info(f"Planning declarations from: {declaration_path}")
    document = load_declarations(declaration_path, overrides)
    graph = prepare(document.resources)
    return plan(graph, state_store.load())


def destroy_plan(state_store: StateStore) -> Plan:
    """Plan the deletion of every recorded resource."""
    return plan(build_graph([]), state_store.load())


def apply_file(
    declaration_path: str,
    provider: ProviderCapability,
    state_store: StateStore,
    overrides: Optional[Dict[str, Any]] = None,
    options: Optional[ApplyOptions] = None,
    cancel_event: Optional[threading.Event] = None
) -> Tuple[Plan, RunResult]:
    """
    Plan a declaration file and reconcile it.

    Validation and cycle errors surface before any provider call.
    """
    current_plan = plan_file(declaration_path, state_store, overrides)
    if current_plan.is_empty:
        logger.info("No changes to apply")
    result = apply(current_plan, provider, state_store, options=options, cancel_event=cancel_event)
    return current_plan, result
