"""Path management utilities for explorer-sync."""

import os
from pathlib import Path
from typing import Optional, Union

from .constants import CONFIG_DIR_ENV


def get_default_config_dir() -> Path:
    """
    Get default config directory.

    Returns:
        $EXPLORER_SYNC_CONFIG_DIR if set, otherwise ~/.explorer-sync
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser().absolute()
    return Path.home() / ".explorer-sync"


def get_config_path(config_root: Optional[Union[Path, str]] = None) -> Path:
    """
    Get the config file path.

    Args:
        config_root: Custom config directory (defaults to get_default_config_dir())

    Returns:
        Path to config.json
    """
    if config_root is None:
        config_root = get_default_config_dir()
    else:
        config_root = Path(config_root).absolute()

    return config_root / "config.json"
