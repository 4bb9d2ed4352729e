"""CI/CD artifact generation from plans and run results."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from ..contracts.plan import Plan
from ..contracts.run_result import RunResult
from ..utils.errors import InfraWeaveError
from ..utils.logging import get_logger

logger = get_logger("report.artifact")

ARTIFACT_FORMAT_VERSION = "1.0.0"


def _write_json(path: Path, data: Any) -> None:
    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, default=str)
        logger.debug(f"Written {path.name}: {path}")
    except (OSError, TypeError) as e:
        raise InfraWeaveError(f"Failed to write {path.name}: {e}")


def write_plan(plan: Plan, output_path: Path) -> None:
    """Write a plan as JSON (references rendered as {"$ref": ...})."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    _write_json(output_path, plan.to_dict())


def run_summary(result: RunResult) -> Dict[str, Any]:
    """High-level summary of a run, stable across identical runs."""
    return {
        "outcome": result.outcome.value,
        "counts": result.counts(),
        "failed": {r.declaration_id: r.error for r in result.failures},
        "blocked": result.blocking_chains(),
    }


def generate_artifacts(plan: Plan, output_dir: Path, result: Optional[RunResult] = None) -> None:
    """
    Generate CI/CD artifacts.
    
    Creates the following files in output_dir:
    - plan.json: Full plan
    - run.json: Per-operation results (only when a run result is given)
    - summary.json: Counts, failures and blocking chains (only with a run result)
    - metadata.json: Report metadata
    
    Raises:
        InfraWeaveError: If a file cannot be written
    """
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise InfraWeaveError(f"Failed to create output directory: {e}")

    write_plan(plan, output_dir / "plan.json")

    if result is not None:
        _write_json(output_dir / "run.json", result.model_dump(mode="json"))
        _write_json(output_dir / "summary.json", run_summary(result))

    from .. import __version__
    metadata = {
        "infraweave_version": __version__,
        "artifact_format_version": ARTIFACT_FORMAT_VERSION,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "generator": "infraweave apply" if result is not None else "infraweave plan",
    }
    _write_json(output_dir / "metadata.json", metadata)

    logger.info(f"Generated artifacts in: {output_dir}")
