"""
Where contact-photo-sync keeps its files.

Everything lives under one configuration directory: ``config.yaml`` and, unless
configured elsewhere, the ``logs/`` directory.
"""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_CONFIG_DIR = Path.home() / ".contact-photo-sync"
CONFIG_DIR_ENV_VAR = "CONTACT_PHOTO_SYNC_CONFIG_DIR"

LOG_SUBDIR = "logs"


def _expand(path: Path | str) -> Path:
    return Path(path).expanduser().resolve()


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Resolve the configuration directory.

    An explicit argument wins over CONTACT_PHOTO_SYNC_CONFIG_DIR, which wins
    over ~/.contact-photo-sync. The result is absolute with ``~`` expanded.
    """
    if config_dir is None:
        config_dir = os.environ.get(CONFIG_DIR_ENV_VAR) or DEFAULT_CONFIG_DIR
    return _expand(config_dir)


def resolve_log_dir(
    log_dir: Path | str | None = None, config_dir: Path | str | None = None
) -> Path:
    """Resolve the log directory: ``log_dir`` if given, else ``<config dir>/logs``."""
    if log_dir is not None:
        return _expand(log_dir)
    return resolve_config_dir(config_dir) / LOG_SUBDIR
