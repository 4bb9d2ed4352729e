"""Declarative registry of provider implementations."""

from typing import Any, Dict, Optional
from .base import ProviderCapability
from .memory import InMemoryProvider
from .http import HttpProvider
from ..utils.errors import ConfigError

SUPPORTED_PROVIDERS = {
    "memory": {
        "class": InMemoryProvider,
        "description": "Simulated resources kept in memory or a local JSON file",
        "options": ["path"],
    },
    "http": {
        "class": HttpProvider,
        "description": "External provider service over JSON/HTTP",
        "options": ["base_url", "timeout", "token"],
    },
}


def get_provider(name: str, options: Optional[Dict[str, Any]] = None) -> ProviderCapability:
    """
    Instantiate a provider by registry name.
    
    Args:
        name: Registry key ("memory" or "http")
        options: Constructor options; keys not listed for the provider are ignored
        
    Raises:
        ConfigError: If the provider name is unknown
    """
    if name not in SUPPORTED_PROVIDERS:
        raise ConfigError(
            f"Unknown provider '{name}'. Supported providers: {', '.join(sorted(SUPPORTED_PROVIDERS))}"
        )
    entry = SUPPORTED_PROVIDERS[name]
    options = options or {}
    kwargs = {key: value for key, value in options.items() if key in entry["options"] and value is not None}
    return entry["class"](**kwargs)
