"""Logging configuration for the scheduling engine."""
import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from gantt_cpm.config.settings import settings


def configure_logging(name: str, level: Optional[str] = None,
                      log_to_file: Optional[bool] = None) -> logging.Logger:
    """
    Configure logging for a module.

    Args:
        name: Logger name (typically __name__ or the package name)
        level: Override for settings.LOG_LEVEL
        log_to_file: Override for settings.LOG_TO_FILE

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level or settings.LOG_LEVEL)

    # Repeated calls must not stack handlers
    if logger.handlers:
        return logger

    # Create formatters and handlers
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_to_file is None:
        log_to_file = settings.LOG_TO_FILE

    # File handler
    if log_to_file:
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / f'{name}.log',
            maxBytes=10485760,  # 10MB
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
