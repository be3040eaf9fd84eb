"""Loguru setup for the CLI. stdout belongs to the protocol, so logs go to stderr."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from intercom_mcp.config.schema import LoggingConfig

STDERR_FORMAT = "<dim>{time:HH:mm:ss.SSS}</dim> | <level>{level: <8}</level> | <level>{message}</level>"

_SINK_IDS: dict[str, int] = {}


def get_logs_dir() -> Path:
    return Path.home() / ".intercom-mcp" / "logs"


def configure_stderr_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with a stderr sink at ``level``."""
    logger.remove()
    _SINK_IDS.clear()
    logger.add(sys.stderr, level=level.upper(), format=STDERR_FORMAT)


def ensure_rotating_log_file(name: str, level: str = "INFO") -> Path:
    """Ensure a rotating log sink for the given command name."""
    log_path = get_logs_dir() / f"{name}.log"
    if name in _SINK_IDS:
        return log_path
    log_path.parent.mkdir(parents=True, exist_ok=True)
    _SINK_IDS[name] = logger.add(
        str(log_path),
        level=level.upper(),
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        encoding="utf-8",
        backtrace=False,
        diagnose=False,
    )
    return log_path


def setup_logging(settings: LoggingConfig, *, name: str = "serve", verbose: bool = False) -> Path | None:
    """Apply ``settings``; returns the log file path when a file sink is enabled."""
    level = "DEBUG" if verbose else settings.level
    configure_stderr_logging(level)
    if settings.file_enabled:
        return ensure_rotating_log_file(name, level=level)
    return None
