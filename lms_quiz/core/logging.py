"""Logging configuration helpers for the quiz attempt service."""

import logging
from typing import Union


def configure_logging(level: Union[int, str] = "INFO") -> logging.Logger:
    """Configure basic stdout logging and return the package logger."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        force=True,
    )
    return logging.getLogger("lms_quiz")
