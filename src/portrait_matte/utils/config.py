"""Configuration management for portrait-matte."""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from .paths import get_config_dir


logger = logging.getLogger(__name__)


# Default configuration values
DEFAULT_CONFIG = {
    "model_name": "modnet",
    "model_path": "modnet.onnx",
    "use_gpu": True,
    "quality": "high",
    "ref_size": 512,
    "threshold": 0.65,
    "log_level": "INFO",
    "auto_save_settings": True,
}


class ConfigManager:
    """
    Manage pipeline settings with JSON persistence.

    Settings are stored in the user's config directory and merged over
    DEFAULT_CONFIG on load.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Optional custom path for the config file.
                        Defaults to user config directory.
        """
        self.config_path = config_path or (get_config_dir() / "settings.json")
        self._config = self._load_config()

    def _load_config(self) -> dict:
        """Load configuration from file, merging with defaults."""
        config = DEFAULT_CONFIG.copy()

        if self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    saved_config = json.load(f)
                if isinstance(saved_config, dict):
                    config.update(saved_config)
                else:
                    logger.warning("Ignoring config %s: not a JSON object", self.config_path)
            except (json.JSONDecodeError, IOError) as e:
                logger.warning("Could not load config: %s", e)

        return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(self._config, f, indent=2)
        except IOError as e:
            logger.warning("Could not save config: %s", e)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value, or default if the key doesn't exist."""
        return self._config.get(key, default)

    def set(self, key: str, value: Any, auto_save: bool = True) -> None:
        """
        Set a configuration value.

        Args:
            key: Configuration key to set.
            value: Value to store.
            auto_save: Whether to save immediately (if auto_save_settings is enabled).
        """
        self._config[key] = value
        if auto_save and self._config.get("auto_save_settings", True):
            self.save()

    def reset(self, key: Optional[str] = None) -> None:
        """
        Reset configuration to defaults.

        Args:
            key: Specific key to reset. If None, resets all settings.
        """
        if key is None:
            self._config = DEFAULT_CONFIG.copy()
        elif key in DEFAULT_CONFIG:
            self._config[key] = DEFAULT_CONFIG[key]
        self.save()

    def get_all(self) -> dict:
        """Get all configuration values."""
        return self._config.copy()

    def update(self, updates: dict) -> None:
        """Update multiple configuration values at once."""
        self._config.update(updates)
        if self._config.get("auto_save_settings", True):
            self.save()

    def get_profile(self):
        """
        Build the model profile described by this configuration.

        A ref_size that differs from the default takes precedence over the
        quality preset.

        Raises:
            KeyError: If model_name is unknown.
            ValueError: If quality is not a known preset.
        """
        from ..engine.profiles import get_profile, with_quality

        name = self.get("model_name", DEFAULT_CONFIG["model_name"])
        threshold = self.get("threshold", DEFAULT_CONFIG["threshold"])
        ref_size = self.get("ref_size", DEFAULT_CONFIG["ref_size"])

        if ref_size != DEFAULT_CONFIG["ref_size"]:
            return get_profile(name, ref_size=ref_size, threshold=threshold)

        profile = get_profile(name, threshold=threshold)
        return with_quality(profile, self.get("quality", DEFAULT_CONFIG["quality"]))
