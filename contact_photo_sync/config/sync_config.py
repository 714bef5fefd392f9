"""
Sync configuration for photo synchronization runs.

Provides configuration dataclasses for a sync run:

- SyncOptions: the per-run switches chosen by the user
  (overwrite existing photos, require confirmation)
- SyncSettings: the full set of tunables, usually read from config.yaml

Configuration file format (config.yaml):

    overwrite_photos: false
    require_confirmation: true
    approval_timeout: 60
    rate_limit_interval: 1.5
    shuffle_contacts: true
    api_page_size: 250

Notes:
    - Every key is optional; missing keys fall back to defaults
    - SyncOptions values may also arrive as the strings "true"/"false"
      (e.g. from a query string)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from google.oauth2.credentials import Credentials

from contact_photo_sync.api.people_api import (
    DEFAULT_INITIAL_RETRY_DELAY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_RETRY_DELAY,
    DEFAULT_PAGE_SIZE,
    PeopleAPI,
)
from contact_photo_sync.config.loader import ConfigError, ConfigLoader
from contact_photo_sync.sync.approval import DEFAULT_APPROVAL_TIMEOUT
from contact_photo_sync.sync.rate_limiter import DEFAULT_RATE_LIMIT_INTERVAL
from contact_photo_sync.utils.logging import setup_logging

logger = logging.getLogger(__name__)


class SyncConfigError(Exception):
    """Raised when sync configuration values are invalid."""

    pass


def _parse_flag(name: str, value: Any, default: bool = False) -> bool:
    """Parse a boolean option given as a bool or a "true"/"false" string."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise SyncConfigError(
        f"{name} must be a boolean or 'true'/'false', got {value!r}"
    )


@dataclass(frozen=True)
class SyncOptions:
    """
    Immutable options for one sync run.

    Attributes:
        overwrite_photos: Replace photos on contacts that already have one
        require_confirmation: Ask the connected user to approve every update

    Usage:
        options = SyncOptions(overwrite_photos=True)

        # From query-string style values
        options = SyncOptions.from_dict(
            {"overwrite_photos": "false", "require_confirmation": "true"}
        )
    """

    overwrite_photos: bool = False
    require_confirmation: bool = False

    @classmethod
    def from_dict(
        cls, data: dict[str, Any] | None, defaults: SyncOptions | None = None
    ) -> SyncOptions:
        """
        Create SyncOptions from a dictionary.

        Args:
            data: Mapping with optional overwrite_photos/require_confirmation
            defaults: Values to use for keys missing from data

        Returns:
            SyncOptions instance

        Raises:
            SyncConfigError: If a value is not a boolean or "true"/"false"
        """
        base = defaults or cls()
        if not data:
            return base

        if not isinstance(data, dict):
            raise SyncConfigError(
                f"sync options must be a dictionary, got {type(data).__name__}"
            )

        return cls(
            overwrite_photos=_parse_flag(
                "overwrite_photos", data.get("overwrite_photos"), base.overwrite_photos
            ),
            require_confirmation=_parse_flag(
                "require_confirmation",
                data.get("require_confirmation"),
                base.require_confirmation,
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "overwrite_photos": self.overwrite_photos,
            "require_confirmation": self.require_confirmation,
        }


@dataclass
class SyncSettings:
    """
    Tunables for the sync engine and the People API client.

    Attributes:
        options: Default SyncOptions for runs that don't override them
        approval_timeout: Seconds to wait for a user decision before denying
        rate_limit_interval: Seconds between photo uploads
        shuffle_contacts: Randomize contact order before iterating
        api_page_size: Contacts per page when listing the directory
        api_max_retries: Retry attempts for failed API calls
        api_initial_retry_delay: Initial backoff delay in seconds
        api_max_retry_delay: Maximum backoff delay in seconds
        log_dir: Directory for log files (None for the default)
    """

    options: SyncOptions = field(default_factory=SyncOptions)
    approval_timeout: float = DEFAULT_APPROVAL_TIMEOUT
    rate_limit_interval: float = DEFAULT_RATE_LIMIT_INTERVAL
    shuffle_contacts: bool = True
    api_page_size: int = DEFAULT_PAGE_SIZE
    api_max_retries: int = DEFAULT_MAX_RETRIES
    api_initial_retry_delay: float = DEFAULT_INITIAL_RETRY_DELAY
    api_max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY
    log_dir: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SyncSettings:
        """
        Create SyncSettings from a validated configuration dictionary.

        Args:
            data: Dictionary as returned by ConfigLoader.load_and_validate()

        Returns:
            SyncSettings with defaults for missing keys
        """
        if not data:
            return cls()

        log_dir = data.get("log_dir")

        return cls(
            options=SyncOptions.from_dict(data),
            approval_timeout=float(
                data.get("approval_timeout", DEFAULT_APPROVAL_TIMEOUT)
            ),
            rate_limit_interval=float(
                data.get("rate_limit_interval", DEFAULT_RATE_LIMIT_INTERVAL)
            ),
            shuffle_contacts=data.get("shuffle_contacts", True),
            api_page_size=data.get("api_page_size", DEFAULT_PAGE_SIZE),
            api_max_retries=data.get("api_max_retries", DEFAULT_MAX_RETRIES),
            api_initial_retry_delay=float(
                data.get("api_initial_retry_delay", DEFAULT_INITIAL_RETRY_DELAY)
            ),
            api_max_retry_delay=float(
                data.get("api_max_retry_delay", DEFAULT_MAX_RETRY_DELAY)
            ),
            log_dir=Path(log_dir).expanduser() if log_dir else None,
        )

    def create_people_api(self, credentials: Credentials) -> PeopleAPI:
        """Build a PeopleAPI client with these paging and retry settings."""
        return PeopleAPI(
            credentials,
            page_size=self.api_page_size,
            max_retries=self.api_max_retries,
            initial_retry_delay=self.api_initial_retry_delay,
            max_retry_delay=self.api_max_retry_delay,
        )

    def configure_logging(
        self, verbose: bool = False, use_colors: bool = True
    ) -> logging.Logger:
        """
        Set up package logging, writing the daily log file to log_dir.

        Without a configured log_dir the file location comes from
        CONTACT_PHOTO_SYNC_LOG_FILE or the default log directory.
        """
        return setup_logging(
            verbose=verbose, log_dir=self.log_dir, use_colors=use_colors
        )


def load_settings(config_dir: Path | str | None = None) -> SyncSettings:
    """
    Load sync settings from config.yaml in a config directory.

    CONTACT_PHOTO_SYNC_<KEY> environment variables override file values.

    Resolution order for config directory:
    1. Explicit config_dir parameter (if provided)
    2. CONTACT_PHOTO_SYNC_CONFIG_DIR environment variable (if set)
    3. Default: ~/.contact-photo-sync

    Args:
        config_dir: Configuration directory path

    Returns:
        SyncSettings (defaults if the file doesn't exist)

    Raises:
        SyncConfigError: If the file exists but is invalid
    """
    loader = ConfigLoader(config_dir=config_dir)
    logger.debug(f"Loading settings from directory: {loader.config_dir}")

    try:
        data = loader.load_and_validate()
    except ConfigError as e:
        raise SyncConfigError(str(e)) from e

    return SyncSettings.from_dict(data)
