"""
Logging configuration for the command-line tool.

Library modules only obtain loggers through get_logger(); handlers are
installed once by the CLI entry point.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from .paths import get_log_file_path


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def rotate_log_files(log_file: Path) -> None:
    """
    Move log_file aside as <stem>.old<suffix>, replacing any earlier copy.

    Only the current and the previous run are kept.
    """
    if not log_file.exists():
        return

    old_log_file = log_file.with_name(f"{log_file.stem}.old{log_file.suffix}")
    try:
        log_file.replace(old_log_file)
    except OSError as e:
        print(f"Warning: Could not rotate log file: {e}", file=sys.stderr)


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    log_to_file: bool = True
) -> None:
    """
    Configure application-wide logging.

    Console output goes to stderr so that converted filters printed on stdout
    stay machine-readable.

    Args:
        level: Logging level (e.g., logging.DEBUG, logging.INFO).
        log_file: Log file path. If None, uses log.txt in the persistent data directory.
        log_to_file: Whether to also log to a file.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [console_handler]

    if log_to_file:
        if log_file is None:
            log_file = get_log_file_path()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        rotate_log_files(log_file)

        file_handler = logging.FileHandler(log_file, encoding='utf-8', mode='w')
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module (typically called with __name__)."""
    return logging.getLogger(name)
