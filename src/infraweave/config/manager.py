"""Tiered configuration: packaged defaults, user config, project (or explicit) config."""

import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from .paths import get_user_config_path, get_project_config_path, get_defaults_path
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("config.manager")


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def config_tiers(config_path: Optional[str] = None) -> List[Tuple[str, Path, bool]]:
    """
    Config files in merge order as ``(tier, path, required)``.

    An explicit ``config_path`` takes the place of the project tier and must
    exist; the user and project tiers are optional.
    """
    tiers = [("user", get_user_config_path(), False)]
    if config_path is not None:
        tiers.append(("explicit", Path(config_path), True))
    else:
        project = get_project_config_path()
        if project is not None:
            tiers.append(("project", project, False))
    return tiers


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Merge every config tier over the packaged defaults.

    Broken optional tiers are skipped with a warning; a broken or missing
    explicit file is an error.

    Raises:
        ConfigError: If the explicit config file is missing or invalid
    """
    config = _read_yaml(get_defaults_path())
    for tier, path, required in config_tiers(config_path):
        if not path.exists():
            if required:
                raise ConfigError(f"Config file not found: {path}")
            continue
        try:
            _deep_merge(config, _read_yaml(path))
        except ConfigError as e:
            if required:
                raise
            logger.warning(f"Ignoring {tier} config: {e}")
            continue
        logger.debug(f"Merged {tier} config from {path}")
    return config


def save_config(config: Dict[str, Any], path: Optional[Path] = None) -> Path:
    """
    Write settings as YAML (default: the user config file).

    Returns:
        Path written
    """
    target = Path(path) if path is not None else get_user_config_path()
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, 'w', encoding='utf-8') as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigError(f"Failed to save config to {target}: {e}")
    logger.info(f"Saved config to {target}")
    return target


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Merge override into base in place; nested mappings merge, everything else replaces."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
