"""Logging infrastructure for AccessGate.

Engine modules log through ``logging.getLogger(__name__)``; the application
configures the ``accessgate`` parent logger once at startup. Output always
goes to the console and optionally to a rotating file.
"""

import logging
import logging.handlers
import os

VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def setup_logger(
    name: str = "accessgate",
    log_dir: str = "/var/log/accessgate",
    level: str = "INFO",
    file_logging: bool = False,
    max_bytes: int = 10485760,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """Attach console (and optionally rotating file) handlers to a logger.

    Calling it again for the same name only updates the level.

    Raises:
        ValueError: level is not one of VALID_LEVELS
    """
    level_upper = level.upper()
    if level_upper not in VALID_LEVELS:
        raise ValueError(
            f"Invalid log level: {level}. "
            f"Must be one of: {', '.join(VALID_LEVELS)}"
        )

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level_upper))
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = [logging.StreamHandler()]
    if file_logging:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, f"{name}.log"),
            maxBytes=max_bytes,
            backupCount=backup_count,
        ))

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def configure_from_settings(settings) -> logging.Logger:
    """Configure the ``accessgate`` logger from application settings."""
    return setup_logger(
        "accessgate",
        log_dir=settings.log_dir,
        level=settings.log_level,
        file_logging=settings.log_file_enabled,
    )
