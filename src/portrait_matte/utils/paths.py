"""Path utilities for portrait-matte."""

import os
import sys
from pathlib import Path


APP_NAME = "portrait_matte"


def get_cache_dir() -> Path:
    """
    Get the user cache directory for model files.

    Returns ~/.cache/portrait_matte on Unix-like systems,
    or %LOCALAPPDATA%/portrait_matte on Windows.
    """
    if sys.platform == "win32":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    else:
        base = Path(os.environ.get("XDG_CACHE_HOME", Path.home() / ".cache"))

    return ensure_dir(base / APP_NAME)


def get_models_dir() -> Path:
    """
    Get the directory searched for relative model paths.

    PORTRAIT_MATTE_MODELS overrides the default of <cache dir>/models.
    """
    override = os.environ.get("PORTRAIT_MATTE_MODELS")
    if override:
        return Path(override)
    return get_cache_dir() / "models"


def get_config_dir() -> Path:
    """
    Get the user configuration directory.

    Returns ~/.config/portrait_matte on Unix-like systems,
    or %APPDATA%/portrait_matte on Windows.
    """
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))

    return ensure_dir(base / APP_NAME)


def get_logs_dir() -> Path:
    """Get the logs directory."""
    return ensure_dir(get_config_dir() / "logs")


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path
