"""Local configuration store for explorer-sync."""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .constants import API_ROOT_ENV, API_TOKEN_ENV, DEFAULT_API_ROOT


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load the config file or return an empty dict.

    Args:
        config_path: Path to config.json

    Returns:
        Stored settings, empty if the file doesn't exist or is corrupted
    """
    try:
        with open(config_path) as f:
            config = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        return {}

    return config if isinstance(config, dict) else {}


def save_config(config: Dict[str, Any], config_path: Path) -> None:
    """
    Save settings to disk.

    Creates parent directories if they don't exist. The file holds an API
    token, so it is only readable by its owner.
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        json.dump(config, f, indent=2)
    os.chmod(config_path, 0o600)


def resolve_api_root(config: Dict[str, Any], api_root: Optional[str] = None) -> str:
    """Explicit value, then $EXPLORER_SYNC_API_ROOT, then the stored value, then the default."""
    return api_root or os.environ.get(API_ROOT_ENV) or config.get("api_root") or DEFAULT_API_ROOT


def resolve_api_token(config: Dict[str, Any], api_token: Optional[str] = None) -> Optional[str]:
    """Explicit value, then $EXPLORER_SYNC_API_TOKEN, then the stored token."""
    return api_token or os.environ.get(API_TOKEN_ENV) or config.get("api_token")
