"""Logging helpers."""
from __future__ import annotations

import logging

from src.infrastructure.settings import AppSettings


def setup_logging(settings: AppSettings) -> logging.Logger:
    """Configure the root handler once and return the service logger."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    return logging.getLogger("imagegenie")
