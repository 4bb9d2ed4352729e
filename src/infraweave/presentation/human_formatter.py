"""Human-friendly output formatter - converts plans and run results to readable text."""

import os
from collections import deque
from typing import Dict, List, Optional
from ..contracts.plan import Plan, OperationKind
from ..contracts.run_result import RunResult, RunOutcome, OperationStatus
from ..execution.drift import DriftReport, DriftStatus


def _use_ascii(ascii_mode: Optional[bool] = None) -> bool:
    """Resolve whether to use ASCII output (checked at format time)."""
    if ascii_mode is not None:
        return bool(ascii_mode)
    return os.environ.get("INFRAWEAVE_ASCII", "").lower() in ("1", "true", "yes")


def _section(title: str, width: int = 60) -> List[str]:
    """Return section header."""
    return [title, "-" * width]


def _join_names(names: List[str]) -> str:
    """'a', 'a and b', 'a, b and c'."""
    if len(names) <= 1:
        return "".join(names)
    return f"{', '.join(names[:-1])} and {names[-1]}"


_SYMBOLS = {
    OperationKind.CREATE: "+",
    OperationKind.UPDATE: "~",
    OperationKind.DELETE: "-",
}


def format_plan(plan: Plan) -> str:
    """Render a plan as an ordered list of operations with a count line."""
    lines = _section("InfraWeave Plan")
    if plan.is_empty:
        lines.append("No changes. Infrastructure matches the declarations.")
        return "\n".join(lines)

    width = max(len(op.declaration_id) for op in plan.operations)
    for index, op in enumerate(plan.operations, start=1):
        marker = " (if changed)" if op.conditional else ""
        lines.append(
            f"{index:>3}. {_SYMBOLS[op.kind]} {op.kind.value.lower():<6} "
            f"{op.declaration_id:<{width}}  [{op.resource_type}] {op.reason}{marker}"
        )

    counts = plan.counts()
    lines.append("")
    lines.append(
        f"Plan: {counts['Create']} to create, {counts['Update']} to update, {counts['Delete']} to delete."
    )
    return "\n".join(lines)


def blocking_paths(plan: Plan, result: RunResult) -> Dict[str, List[str]]:
    """
    Shortest chain of declaration ids from the failed root to each blocked one.

    Returns:
        Blocked declaration id -> [failed_id, ..., blocked_id]
    """
    key_by_declaration = {r.declaration_id: r.key for r in result.results}
    waiting = plan.dependents()
    paths: Dict[str, List[str]] = {}
    for blocked in result.blocked:
        if blocked.blocked_by is None or blocked.blocked_by not in key_by_declaration:
            continue
        start = key_by_declaration[blocked.blocked_by]
        previous = {start: None}
        queue = deque([start])
        while queue:
            key = queue.popleft()
            if key == blocked.key:
                break
            for dependent in waiting.get(key, []):
                if dependent not in previous:
                    previous[dependent] = key
                    queue.append(dependent)
        if blocked.key not in previous:
            continue
        chain = []
        key = blocked.key
        while key is not None:
            chain.append(key.split(":", 1)[1])
            key = previous[key]
        paths[blocked.declaration_id] = list(reversed(chain))
    return paths


def format_run_result(result: RunResult, plan: Optional[Plan] = None, ascii_mode: Optional[bool] = None) -> str:
    """Render the structured run summary, failures and what they blocked."""
    ascii_mode = _use_ascii(ascii_mode)
    arrow = "->" if ascii_mode else "→"
    lines = _section("InfraWeave Apply")

    headline = {
        RunOutcome.SUCCESS: "Apply complete.",
        RunOutcome.FAILED: "Apply finished with failures.",
        RunOutcome.CANCELLED: "Apply cancelled; completed work was saved.",
    }[result.outcome]
    lines.append(headline)

    counts = result.counts()
    lines.append(
        "Applied: {Applied}  Unchanged: {Unchanged}  Deleted: {Deleted}  "
        "Failed: {Failed}  Blocked: {Blocked}  Cancelled: {Cancelled}".format(**counts)
    )

    if result.failures:
        lines.append("")
        lines.extend(_section("Failures"))
        for failure in result.failures:
            lines.append(f"{failure.declaration_id} ({failure.kind.value.lower()}): {failure.error}")

        chains = result.blocking_chains()
        paths = blocking_paths(plan, result) if plan is not None else {}
        if any(chains.values()):
            lines.append("")
            lines.extend(_section("Blocked"))
            for failed_id, blocked_ids in chains.items():
                if not blocked_ids:
                    continue
                lines.append(f"{failed_id} failed, which blocked {_join_names(blocked_ids)}")
                for blocked_id in blocked_ids:
                    if blocked_id in paths and len(paths[blocked_id]) > 2:
                        lines.append(f"    {f' {arrow} '.join(paths[blocked_id])}")

    cancelled = result.with_status(OperationStatus.CANCELLED)
    if cancelled:
        lines.append("")
        lines.append(f"Not started: {', '.join(r.declaration_id for r in cancelled)}")

    return "\n".join(lines)


def format_drift_report(report: DriftReport) -> str:
    """Render drift findings."""
    lines = _section("InfraWeave Drift")
    if not report.entries:
        lines.append("No applied resources to check.")
        return "\n".join(lines)
    for entry in report.entries:
        detail = ""
        if entry.status == DriftStatus.CHANGED:
            detail = f" ({', '.join(entry.changed_attributes)})"
        elif entry.status == DriftStatus.ERROR:
            detail = f" ({entry.error})"
        lines.append(f"{entry.declaration_id:<24} {entry.status.value}{detail}")
    lines.append("")
    lines.append(f"{len(report.drifted)} of {len(report.entries)} resources drifted.")
    return "\n".join(lines)
