"""
Logging setup for applications embedding entcrud.

The library itself only creates module loggers and passes structured context
through `extra`; applications call setup_logging() once at startup.
"""

from __future__ import annotations

import logging

import json_log_formatter

from .config import LogFormat, Settings, get_settings


def setup_logging(settings: Settings | None = None) -> None:
    """Configure logging based on configuration.

    Args:
        settings: Library settings (loaded from env if not provided)
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level, logging.INFO)

    if settings.log_format == LogFormat.JSON:
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]
