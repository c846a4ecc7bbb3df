"""Utility functions and helpers."""

from .config import ConfigManager
from .image_utils import apply_alpha_to_image, as_image_array, resize_bilinear, to_rgba
from .logging_utils import setup_logging
from .paths import get_cache_dir, get_config_dir, get_logs_dir, get_models_dir

__all__ = [
    "ConfigManager",
    "apply_alpha_to_image",
    "as_image_array",
    "resize_bilinear",
    "to_rgba",
    "setup_logging",
    "get_cache_dir",
    "get_config_dir",
    "get_logs_dir",
    "get_models_dir",
]
