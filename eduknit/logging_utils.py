"""Centralized logging configuration for the EduKnit API."""

import logging
from logging import Logger
from typing import Iterable, Optional


DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO", handlers: Optional[Iterable[logging.Handler]] = None) -> Logger:
    """Configure the root logger once; repeated calls only adjust the level."""

    logger = logging.getLogger()
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    if getattr(logger, "_eduknit_configured", False):
        return logger

    if handlers is None:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        logger.addHandler(stream_handler)
    else:
        for handler in handlers:
            logger.addHandler(handler)

    logger._eduknit_configured = True
    return logger


__all__ = ["configure_logging", "DEFAULT_LOG_FORMAT"]
