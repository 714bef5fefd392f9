"""
contact_photo_sync.config - Configuration management module

Contains configuration loading, validation, and default settings.
"""

from contact_photo_sync.config.loader import ConfigError, ConfigLoader
from contact_photo_sync.config.sync_config import (
    SyncConfigError,
    SyncOptions,
    SyncSettings,
    load_settings,
)

__all__ = [
    "ConfigError",
    "ConfigLoader",
    "SyncConfigError",
    "SyncOptions",
    "SyncSettings",
    "load_settings",
]
