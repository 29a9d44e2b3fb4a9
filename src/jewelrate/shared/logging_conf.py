# src/jewelrate/shared/logging_conf.py
"""
Logging Configuration - Logging Setup and Configuration

One call at startup configures the root logger for the service so that
rate fallbacks, stock commit failures and payment outcomes end up in the
same stream (stdout, a rotating file, or both). Chatty third-party
loggers (HTTP pool, SQL echo, uvicorn access lines) are held at WARNING
unless the service itself runs at DEBUG.

Files that USE this module:
- jewelrate.app (setup_logging function for logging initialization)

Files that this module USES:
- None (pure configuration module)
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s :: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NOISY_LOGGERS = ("urllib3", "sqlalchemy.engine", "uvicorn.access")


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def _log_file_path(log_file: Optional[Union[str, Path]],
                   log_dir: Optional[Union[str, Path]]) -> Optional[Path]:
    # log_dir wins; the file inside it is always jewelrate.log
    if log_dir:
        path = Path(log_dir) / "jewelrate.log"
    elif log_file:
        path = Path(log_file)
    else:
        return None
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    log_dir: Optional[Union[str, Path]] = None,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    stdout: bool = True,
) -> Optional[Path]:
    """
    Configure application-wide logging.

    Args:
        level: Logging level, as a number or a name such as "INFO"
        log_file: Optional path to a log file (enables file logging)
        log_dir: Optional directory for log files (file is named jewelrate.log)
        max_bytes: Maximum size per log file before rotation (default: 10MB)
        backup_count: Number of rotated files to keep (default: 5)
        stdout: Also log to stdout; turn off under systemd/supervisor,
                which capture stdout themselves

    Returns:
        Path of the log file, or None when logging to stdout only
    """
    numeric_level = _resolve_level(level)
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    handlers: List[logging.Handler] = []

    file_path = _log_file_path(log_file, log_dir)
    if file_path is not None:
        file_handler = RotatingFileHandler(
            file_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8",
        )
        handlers.append(file_handler)

    # Never leave the service silent
    if stdout or not handlers:
        handlers.append(logging.StreamHandler(sys.stdout))

    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(level=numeric_level, handlers=handlers, force=True)

    noisy_level = numeric_level if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, file=%s, stdout=%s",
        logging.getLevelName(numeric_level), file_path or "-", stdout,
    )
    return file_path
