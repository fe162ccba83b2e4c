"""Logging configuration for applications embedding the validator."""

import logging


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Setup basic logging and return the package logger."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger = logging.getLogger("jsl")
    logger.setLevel(level)
    return logger
