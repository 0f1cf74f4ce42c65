"""
CountyStats - Logging Configuration

Console output for operators and a rotating file under the configured
log directory. Cache and warm events are logged under the ``countystats``
package logger, so one level setting covers every module.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "countystats"
DEFAULT_LOG_FILE = "countystats.log"

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Drivers and servers whose INFO output drowns the CACHE HIT/MISS/FILL lines
QUIET_LOGGERS = ("werkzeug", "psycopg2", "redis")


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_dir: Path = Path("data/logs")
) -> logging.Logger:
    """
    Configure application-wide logging.

    Args:
        level: Console and package logging level
        log_file: Log file name inside log_dir (default: countystats.log)
        log_dir: Directory for the rotating log file, created if missing

    Returns:
        Root logger instance
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / (log_file or DEFAULT_LOG_FILE)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    # The file always gets DEBUG so warm cycles can be traced after the fact
    file_handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(file_handler)

    configure_module_loggers(level)

    return root_logger


def configure_module_loggers(default_level: int = logging.INFO) -> None:
    """Set the package logger level and quieten third-party loggers."""
    logging.getLogger(PACKAGE_LOGGER).setLevel(default_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
