"""
contact_photo_sync.utils - Utility module

Common utilities including phone number normalization and path resolution.
"""

from contact_photo_sync.utils.normalization import normalize_phone_number
from contact_photo_sync.utils.paths import (
    DEFAULT_CONFIG_DIR,
    resolve_config_dir,
    resolve_log_dir,
)

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "normalize_phone_number",
    "resolve_config_dir",
    "resolve_log_dir",
]
