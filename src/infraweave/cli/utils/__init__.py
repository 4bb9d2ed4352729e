"""CLI utilities package."""

from typing import Any, Dict, Optional
import click
from ...config import load_settings, EngineSettings
from ...contracts.run_result import RunOutcome
from ...execution.executor import ApplyOptions
from ...providers.base import ProviderCapability
from ...providers.registry import get_provider
from ...state.store import JsonFileStateStore
from ...utils.errors import InfraWeaveError, ValidationError, CycleError
from ...utils.logging import get_logger, set_quiet

logger = get_logger("cli.utils")

# Exit codes
# 0 = every operation succeeded (or nothing to do)
# 1 = runtime error (bad file, config, state store, unexpected exception)
# 2 = at least one declaration Failed or Blocked
# 3 = declaration set rejected (ValidationError / CycleError), nothing attempted
# 4 = run cancelled (interrupt or deadline), completed work persisted
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_FAILED = 2
EXIT_INVALID = 3
EXIT_CANCELLED = 4


def format_error(message: str, suggestion: Optional[str] = None) -> str:
    """
    Format error message with optional suggestion.
    
    Args:
        message: Error message
        suggestion: Optional suggestion or help text
        
    Returns:
        Formatted error string
    """
    error = f"Error: {message}"
    if suggestion:
        error += f"\nTip: {suggestion}"
    return error


def describe_error(error: InfraWeaveError) -> str:
    """Error text for the terminal; validation errors list every problem."""
    if isinstance(error, ValidationError) and len(error.problems) > 1:
        return format_error(
            f"{len(error.problems)} problems in declarations:\n" + "\n".join(f"  - {p}" for p in error.problems)
        )
    if isinstance(error, CycleError):
        return format_error(str(error), "Remove one reference or depends_on entry along the cycle")
    return format_error(str(error))


def exit_code_for(error: InfraWeaveError) -> int:
    if isinstance(error, (ValidationError, CycleError)):
        return EXIT_INVALID
    return EXIT_ERROR


def exit_code_for_outcome(outcome: RunOutcome) -> int:
    return {
        RunOutcome.SUCCESS: EXIT_OK,
        RunOutcome.FAILED: EXIT_FAILED,
        RunOutcome.CANCELLED: EXIT_CANCELLED,
    }[outcome]


def resolve_settings(ctx: click.Context, max_workers: Optional[int] = None) -> EngineSettings:
    """Load settings from the group-level options (--config, --state, --provider) and command flags."""
    obj = ctx.find_root().obj or {}
    overrides: Dict[str, Any] = {}
    if obj.get("state_path"):
        overrides["state"] = {"path": obj["state_path"]}
    if obj.get("provider"):
        overrides["provider"] = {"name": obj["provider"]}
    if max_workers is not None:
        overrides["max_workers"] = max_workers
    return load_settings(obj.get("config_path"), overrides)


def open_state_store(settings: EngineSettings) -> JsonFileStateStore:
    return JsonFileStateStore(settings.state.path).open()


def build_provider(settings: EngineSettings) -> ProviderCapability:
    return get_provider(settings.provider.name, settings.provider.model_dump())


def apply_options(settings: EngineSettings, deadline: Optional[float] = None) -> ApplyOptions:
    return ApplyOptions(
        max_workers=settings.max_workers,
        max_attempts=settings.retry.max_attempts,
        backoff_base=settings.retry.backoff_base,
        backoff_max=settings.retry.backoff_max,
        deadline=deadline
    )


def quiet_logging(quiet: bool) -> None:
    set_quiet(quiet)


def echo(text: str, err: bool = False) -> None:
    """Echo that degrades to ASCII on terminals that cannot encode the text."""
    try:
        click.echo(text, err=err)
    except UnicodeEncodeError:
        click.echo(text.encode('ascii', errors='replace').decode('ascii'), err=err)


__all__ = [
    "format_error",
    "describe_error",
    "exit_code_for",
    "exit_code_for_outcome",
    "resolve_settings",
    "open_state_store",
    "build_provider",
    "apply_options",
    "quiet_logging",
    "echo",
    "EXIT_OK",
    "EXIT_ERROR",
    "EXIT_FAILED",
    "EXIT_INVALID",
    "EXIT_CANCELLED",
]
