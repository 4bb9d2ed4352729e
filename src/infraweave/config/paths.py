"""Config path resolution for the tiered config system."""

import os
from pathlib import Path
from typing import Optional

CONFIG_DIR_NAME = ".infraweave"
CONFIG_FILE_NAME = "config.yaml"


def get_defaults_path() -> Path:
    """Packaged defaults shipped next to this module."""
    return Path(__file__).parent / "defaults.yaml"


def get_user_config_path() -> Path:
    """User config: $INFRAWEAVE_CONFIG_HOME/config.yaml, else ~/.infraweave/config.yaml"""
    config_home = os.environ.get("INFRAWEAVE_CONFIG_HOME")
    if config_home:
        return Path(config_home) / CONFIG_FILE_NAME
    return Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def get_project_config_path(start: Optional[Path] = None) -> Optional[Path]:
    """
    Nearest .infraweave/config.yaml in the working directory or one of its parents.

    The user config is never treated as a project config, even when the
    search passes through the home directory.
    """
    user_config = get_user_config_path().resolve()
    directory = (start or Path.cwd()).resolve()
    for candidate_dir in [directory, *directory.parents]:
        candidate = candidate_dir / CONFIG_DIR_NAME / CONFIG_FILE_NAME
        if candidate.is_file() and candidate.resolve() != user_config:
            return candidate
    return None
