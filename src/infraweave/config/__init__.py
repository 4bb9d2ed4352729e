"""Configuration module: load engine settings from YAML tiers and environment."""

import os
from typing import Any, Dict, Optional
from pydantic import ValidationError
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .manager import load_config, save_config, _deep_merge
from .paths import get_user_config_path, get_project_config_path
from .settings import EngineSettings, RetrySettings, StateSettings, ProviderSettings

logger = get_logger("config")

# INFRAWEAVE_<NAME> -> dotted settings key
ENVIRONMENT_KEYS = {
    "INFRAWEAVE_MAX_WORKERS": "max_workers",
    "INFRAWEAVE_STATE_PATH": "state.path",
    "INFRAWEAVE_PROVIDER": "provider.name",
    "INFRAWEAVE_PROVIDER_PATH": "provider.path",
    "INFRAWEAVE_PROVIDER_URL": "provider.base_url",
    "INFRAWEAVE_PROVIDER_TOKEN": "provider.token",
    "INFRAWEAVE_RETRY_MAX_ATTEMPTS": "retry.max_attempts",
}


def _environment_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for env_name, dotted in ENVIRONMENT_KEYS.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            continue
        node = overrides
        parts = dotted.split(".")
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value
    return overrides


def load_settings(config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> EngineSettings:
    """
    Load and validate engine settings.
    
    Precedence: packaged defaults < user config < project (or explicit)
    config < INFRAWEAVE_* environment variables < explicit overrides.
    
    Args:
        config_path: Optional explicit config YAML
        overrides: Nested mapping applied last (e.g. from CLI flags)
        
    Returns:
        EngineSettings
        
    Raises:
        ConfigError: If the merged configuration is invalid
    """
    config = load_config(config_path)
    _deep_merge(config, _environment_overrides())
    if overrides:
        _deep_merge(config, overrides)

    try:
        settings = EngineSettings(**config)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}")

    logger.debug(f"Engine settings: {settings.model_dump(exclude={'provider': {'token'}})}")
    return settings


__all__ = [
    "load_settings",
    "load_config",
    "save_config",
    "get_user_config_path",
    "get_project_config_path",
    "EngineSettings",
    "RetrySettings",
    "StateSettings",
    "ProviderSettings",
]
