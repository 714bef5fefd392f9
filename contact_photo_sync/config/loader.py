"""
YAML configuration for contact photo synchronization.

Settings come from ``config.yaml`` in the configuration directory. Any key can
also be set through a ``CONTACT_PHOTO_SYNC_<KEY>`` environment variable, which
takes precedence over the file. Environment values are parsed as YAML scalars,
so ``true``, ``2`` and ``0.5`` arrive as bool, int and float.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from contact_photo_sync.utils import resolve_config_dir

DEFAULT_CONFIG_FILE = "config.yaml"

# Prefix of per-key environment overrides
ENV_PREFIX = "CONTACT_PHOTO_SYNC_"

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


@dataclass(frozen=True)
class _Option:
    types: tuple[type, ...]
    # Lower bound for numeric options; None for unbounded
    minimum: Optional[float] = None
    # True if the bound itself is allowed (>=) rather than excluded (>)
    inclusive: bool = False

    def type_name(self) -> str:
        return " or ".join(t.__name__ for t in self.types)


_FLAG = _Option((bool,))
_COUNT = _Option((int,), minimum=1, inclusive=True)
_DURATION = _Option((int, float), minimum=0)

OPTIONS: dict[str, _Option] = {
    "overwrite_photos": _FLAG,
    "require_confirmation": _FLAG,
    "approval_timeout": _DURATION,
    "rate_limit_interval": _DURATION,
    "shuffle_contacts": _FLAG,
    "api_page_size": _COUNT,
    "api_max_retries": _COUNT,
    "api_initial_retry_delay": _DURATION,
    "api_max_retry_delay": _DURATION,
    "log_dir": _Option((str,)),
}


def _check_option(key: str, value: Any) -> None:
    option = OPTIONS[key]

    # bool is an int subclass; True is not a valid page size
    wrong_bool = isinstance(value, bool) and bool not in option.types
    if wrong_bool or not isinstance(value, option.types):
        raise ConfigError(
            f"Invalid type for '{key}': expected {option.type_name()}, "
            f"got {type(value).__name__}"
        )

    if option.minimum is None:
        return
    if option.inclusive and value < option.minimum:
        raise ConfigError(f"{key} must be >= {option.minimum:g}, got {value}")
    if not option.inclusive and value <= option.minimum:
        raise ConfigError(f"{key} must be > {option.minimum:g}, got {value}")


class ConfigLoader:
    """
    Loads and validates the configuration file.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        config = ConfigLoader().load_and_validate()
        interval = config.get("rate_limit_interval", 1.5)
    """

    def __init__(
        self,
        config_dir: Path | str | None = None,
        config_file: str = DEFAULT_CONFIG_FILE,
    ):
        """
        Args:
            config_dir: Configuration directory (default: resolved from
                $CONTACT_PHOTO_SYNC_CONFIG_DIR or ~/.contact-photo-sync)
            config_file: File name inside config_dir
        """
        self.config_dir = resolve_config_dir(config_dir)
        self.config_file = config_file

    @property
    def config_path(self) -> Path:
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """
        Read the configuration file.

        Returns:
            The file's mapping; {} if the file is missing or empty

        Raises:
            ConfigError: If the file can't be read or isn't a YAML mapping
        """
        return self.load_from_file(self.config_path)

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """Read a specific configuration file. See load()."""
        path = Path(path)
        if not path.exists():
            logger.debug(f"No configuration file at {path}, using defaults")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"Configuration file must contain a YAML dictionary, "
                f"got {type(data).__name__}"
            )

        logger.debug(f"Loaded {len(data)} configuration keys from {path}")
        return data

    def load_env_overrides(self) -> dict[str, Any]:
        """
        Collect CONTACT_PHOTO_SYNC_<KEY> overrides for known keys.

        Raises:
            ConfigError: If an override isn't a valid YAML scalar
        """
        overrides: dict[str, Any] = {}
        for key in OPTIONS:
            raw = os.environ.get(ENV_PREFIX + key.upper())
            if raw is None:
                continue
            if str in OPTIONS[key].types:
                # Paths like "2024" must not become numbers
                value: Any = raw
            else:
                try:
                    value = yaml.safe_load(raw)
                except yaml.YAMLError as e:
                    raise ConfigError(
                        f"Invalid value for {ENV_PREFIX}{key.upper()}: {e}"
                    ) from e
            overrides[key] = value
            logger.debug(f"Configuration '{key}' overridden from environment")
        return overrides

    def validate(self, config: dict[str, Any]) -> None:
        """
        Check types and ranges of known keys. Unknown keys are ignored.

        Raises:
            ConfigError: On the first invalid value
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        for key, value in config.items():
            if key in OPTIONS:
                _check_option(key, value)
            else:
                logger.debug(f"Ignoring unknown configuration key: {key}")

    def load_and_validate(self) -> dict[str, Any]:
        """
        Load the file, apply environment overrides, and validate the result.

        Raises:
            ConfigError: If loading fails or any value is invalid
        """
        config = self.load()
        config.update(self.load_env_overrides())
        self.validate(config)
        return config
