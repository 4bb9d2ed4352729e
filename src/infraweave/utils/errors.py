"""Custom exception classes for InfraWeave."""

from typing import List, Optional


class InfraWeaveError(Exception):
    """Base exception for all InfraWeave errors."""
    pass


class ValidationError(InfraWeaveError):
    """Raised when a declaration set is invalid (unknown type, dangling reference, duplicate id)."""

    def __init__(self, declaration_id: Optional[str], cause: str, problems: Optional[List[str]] = None):
        self.declaration_id = declaration_id
        self.cause = cause
        self.problems = problems or [f"{declaration_id}: {cause}"]
        message = f"Invalid declaration '{declaration_id}': {cause}"
        if len(self.problems) > 1:
            message += f" (and {len(self.problems) - 1} more problem(s))"
        super().__init__(message)


class CycleError(InfraWeaveError):
    """Raised when declarations form a dependency cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.cycle)}")


class ProviderError(InfraWeaveError):
    """Raised by a provider capability when an operation fails."""

    def __init__(self, message: str, retryable: bool = False):
        self.retryable = retryable
        super().__init__(message)


class BlockedError(InfraWeaveError):
    """Synthetic error for operations skipped because a dependency failed or was blocked."""

    def __init__(self, declaration_id: str, blocked_by: str):
        self.declaration_id = declaration_id
        self.blocked_by = blocked_by
        super().__init__(f"'{declaration_id}' blocked by failed dependency '{blocked_by}'")


class StateStoreError(InfraWeaveError):
    """Raised when the state store cannot be read or written."""
    pass


class DeclarationLoadError(InfraWeaveError):
    """Raised when a declaration file cannot be loaded or parsed."""
    pass


class ConfigError(InfraWeaveError):
    """Raised when configuration is invalid or missing."""
    pass


class ResolutionError(InfraWeaveError):
    """Raised when a reference cannot be resolved against applied attributes."""
    pass
