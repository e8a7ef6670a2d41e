"""
Centralized logging setup for the ZoneMap API.

Call setup_logging() once at application startup; every module then just
uses logging.getLogger(__name__).
"""
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

_logging_initialized = False

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_dir: Optional[str] = None,
    log_filename: str = "zonemap.log",
    max_bytes: int = 5 * 1024 * 1024,  # 5 MB
    backup_count: int = 3,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Logging level name or number (LOG_LEVEL setting)
        log_dir: Optional directory for a rotating log file (LOG_DIR setting)
        log_filename: Name of the log file inside log_dir
        max_bytes: Maximum size per log file before rotation
        backup_count: Number of rotated files to keep
    """
    global _logging_initialized
    if _logging_initialized:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path / log_filename, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    _logging_initialized = True
    logging.getLogger(__name__).debug(f"Logging configured at level {logging.getLevelName(level)}")
