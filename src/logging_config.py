"""
Centralized logging configuration with rotating file handlers.

Console output for the user plus one rotating log file per subsystem, so
positioning failures, Overpass/OSRM errors and animation restarts can be
traced after a replay session.

Usage:
    from src.logging_config import setup_logging
    setup_logging()  # Call once at application startup
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Log directory (relative to project root)
LOG_DIR = Path(__file__).parent.parent / "logs"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Rotation settings: 5 MB per file, keep 5 backups (25 MB total max)
MAX_LOG_SIZE_BYTES = 5 * 1024 * 1024
BACKUP_COUNT = 5

# Logger subtree -> log file name
FILE_LOGGERS = {
    "src.navigation": "navigation.log",
    "src.map_viewer": "map_viewer.log",
}

# HTTP clients log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=MAX_LOG_SIZE_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _replace_file_handler(logger: logging.Logger, handler: RotatingFileHandler) -> None:
    for existing in list(logger.handlers):
        if isinstance(existing, RotatingFileHandler):
            logger.removeHandler(existing)
            existing.close()
    logger.addHandler(handler)


def setup_logging(
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    log_dir: Path = LOG_DIR,
) -> None:
    """
    Configure logging with console and rotating file handlers.

    - Console: INFO and above (user-facing messages)
    - Files: DEBUG and above, navigation.log and map_viewer.log

    Calling it again replaces the handlers instead of duplicating them.

    Args:
        console_level: Minimum log level for console output (default: INFO)
        file_level: Minimum log level for file output (default: DEBUG)
        log_dir: Directory for the rotating log files

    Example:
        # Verbose console output while debugging a replay
        setup_logging(console_level=logging.DEBUG)
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all, let handlers filter
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for logger_name, file_name in FILE_LOGGERS.items():
        _replace_file_handler(
            logging.getLogger(logger_name),
            _rotating_handler(log_dir / file_name, file_level, formatter),
        )

    for noisy in QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    root_logger.info(
        f"Logging initialized - console: {logging.getLevelName(console_level)}, "
        f"file: {logging.getLevelName(file_level)}, dir: {log_dir}"
    )
