"""
Logging setup for contact_photo_sync.

Every module logs through ``logging.getLogger(__name__)``; this module only
configures the package logger:
- a console handler, colored when stderr is a color terminal
- a daily log file under the config directory (or a path from the environment)
- a ``run_id`` field on every record, so interleaved lines from concurrent
  sync runs can be told apart
"""

import contextvars
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

from contact_photo_sync.utils.paths import resolve_log_dir

LOGGER_NAME = "contact_photo_sync"

CONSOLE_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_FORMAT = (
    "%(asctime)s [%(run_id)s] %(name)s %(levelname)s "
    "(%(filename)s:%(lineno)d) %(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ENV_DEBUG = "CONTACT_PHOTO_SYNC_DEBUG"
ENV_LOG_LEVEL = "CONTACT_PHOTO_SYNC_LOG_LEVEL"
ENV_LOG_FILE = "CONTACT_PHOTO_SYNC_LOG_FILE"

# Placeholder run id for records logged outside a sync run
NO_RUN_ID = "-"

_current_run_id: contextvars.ContextVar[str] = contextvars.ContextVar(
    "contact_photo_sync_run_id", default=NO_RUN_ID
)


@contextmanager
def run_context(run_id: str) -> Iterator[None]:
    """
    Tag records logged in this thread with ``run_id`` until the block exits.

    Usage:
        with run_context("3f2a9c1e"):
            logger.info("Starting photo sync")
    """
    token = _current_run_id.set(run_id)
    try:
        yield
    finally:
        _current_run_id.reset(token)


def current_run_id() -> str:
    """Run id of the sync run executing in this thread, or NO_RUN_ID."""
    return _current_run_id.get()


class RunContextFilter(logging.Filter):
    """Adds the current run id to each record as ``record.run_id``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _current_run_id.get()
        return True


class ColoredFormatter(logging.Formatter):
    """
    Formatter that colors the level name.

    Colors are dropped when stderr is not a terminal, when NO_COLOR is set
    (https://no-color.org/), or when TERM is "dumb".
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and _stderr_supports_color()

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname)
        if not self.use_colors or color is None:
            return super().format(record)

        # Other handlers share the record
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def _stderr_supports_color() -> bool:
    isatty = getattr(sys.stderr, "isatty", None)
    if isatty is None or not isatty():
        return False
    if os.environ.get("NO_COLOR"):
        return False
    return os.environ.get("TERM", "") != "dumb"


def get_log_level_from_env() -> int:
    """
    Read the log level from the environment.

    CONTACT_PHOTO_SYNC_DEBUG=1/true/yes forces DEBUG; otherwise
    CONTACT_PHOTO_SYNC_LOG_LEVEL is used (WARN is accepted for WARNING).
    Unknown names fall back to INFO.
    """
    if os.environ.get(ENV_DEBUG, "").lower() in ("1", "true", "yes"):
        return logging.DEBUG

    name = os.environ.get(ENV_LOG_LEVEL, "INFO").upper()
    if name == "WARN":
        name = "WARNING"

    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def default_log_dir() -> Path:
    """Log directory inside the resolved config directory."""
    return resolve_log_dir()


def daily_log_file(log_dir: Path) -> Path:
    return log_dir / f"contact_photo_sync_{datetime.now():%Y%m%d}.log"


def get_log_file_path(log_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Resolve where file logs go.

    CONTACT_PHOTO_SYNC_LOG_FILE wins when set; "none", "disabled" or an empty
    value turn file logging off.

    Args:
        log_dir: Directory for the daily log file (default: default_log_dir())

    Returns:
        Log file path, or None if file logging is disabled
    """
    override = os.environ.get(ENV_LOG_FILE)
    if override is not None:
        if override.strip().lower() in ("", "none", "disabled"):
            return None
        return Path(override).expanduser()

    return daily_log_file(log_dir or default_log_dir())


def setup_logging(
    level: Optional[int] = None,
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    log_file: Optional[Path] = None,
    enable_file_logging: bool = True,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure the package logger.

    Safe to call more than once; previous handlers are replaced.

    Args:
        level: Console level (default: from the environment)
        verbose: DEBUG level and the verbose format on the console
        log_dir: Directory for the daily log file
        log_file: Explicit log file, takes precedence over log_dir
        enable_file_logging: Set False to log to the console only
        use_colors: Color the console level names when supported

    Returns:
        The package logger
    """
    if verbose:
        level = logging.DEBUG
    elif level is None:
        level = get_log_level_from_env()

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)
    logger.propagate = False

    run_filter = RunContextFilter()
    console_format = VERBOSE_FORMAT if verbose else CONSOLE_FORMAT

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.addFilter(run_filter)
    console.setFormatter(ColoredFormatter(console_format, DATE_FORMAT, use_colors))
    logger.addHandler(console)

    if not enable_file_logging:
        return logger

    if log_file is not None:
        file_path: Optional[Path] = log_file
    elif log_dir is not None:
        file_path = daily_log_file(log_dir)
    else:
        file_path = get_log_file_path()

    if file_path is None:
        return logger

    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(file_path, encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not open log file {file_path}: {e}")
        return logger

    # The file keeps full detail regardless of the console level
    file_handler.setLevel(logging.DEBUG)
    file_handler.addFilter(run_filter)
    file_handler.setFormatter(logging.Formatter(VERBOSE_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)
    logger.setLevel(logging.DEBUG)
    logger.debug(f"Logging to {file_path}")

    return logger


def set_log_level(level: int) -> None:
    """Change the console level at runtime; file handlers stay at DEBUG."""
    logger = logging.getLogger(LOGGER_NAME)
    has_file = False
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler):
            has_file = True
        else:
            handler.setLevel(level)
    logger.setLevel(logging.DEBUG if has_file else level)
