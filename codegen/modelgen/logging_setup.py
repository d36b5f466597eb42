"""
Logging setup for the generator tools.

Invariants:
    - Exactly one handler on the root logger after setup_logging()
    - Library code only uses module loggers; only entry points call this
"""

from __future__ import annotations

import logging

import json_log_formatter

from .config import GeneratorSettings


def setup_logging(settings: GeneratorSettings) -> None:
    """Configure logging based on settings.

    Args:
        settings: Generator settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]
