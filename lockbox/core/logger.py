"""
Centralized logging configuration for Lockbox
"""
import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Relative to the working directory unless LOCKBOX_LOG_DIR says otherwise
LOG_DIR = Path(os.getenv("LOCKBOX_LOG_DIR", "logs"))

MAX_LOG_BYTES = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5

# RequestLoggingMiddleware already records every request
QUIET_LOGGERS = ("uvicorn.access",)


def get_logger(name: str) -> logging.Logger:
    """
    Get or create a logger instance.

    Handlers live on the root logger (see configure_app_logging), so module
    loggers only need a name.

    Args:
        name: Logger name (typically __name__ of the calling module)
    """
    return logging.getLogger(name)


def configure_app_logging(
    level: int | str = logging.INFO,
    log_to_file: bool = True,
    log_file: str = "lockbox.log",
) -> None:
    """
    Configure application-wide logging settings.

    This should be called once at process startup, before the app is built.

    Args:
        level: Root logging level, as a number or a name like "DEBUG"
        log_to_file: Whether to also write a rotating log file under LOG_DIR
        log_file: Log file name (default: "lockbox.log")
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_to_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                LOG_DIR / log_file,
                maxBytes=MAX_LOG_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
