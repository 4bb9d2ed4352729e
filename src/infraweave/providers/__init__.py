"""Provider capability implementations consumed by the reconciler."""

from .base import ProviderCapability, ProviderResult
from .memory import InMemoryProvider
from .http import HttpProvider
from .registry import get_provider, SUPPORTED_PROVIDERS

__all__ = [
    "ProviderCapability",
    "ProviderResult",
    "InMemoryProvider",
    "HttpProvider",
    "get_provider",
    "SUPPORTED_PROVIDERS",
]
