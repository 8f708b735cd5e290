"""Environment-driven settings for the portfolio views."""
from __future__ import annotations

import logging
import os

from .schemas import Zoom

logger = logging.getLogger(__name__)

DEFAULT_ZOOM = Zoom.WEEKLY
DEFAULT_UPCOMING_WINDOW_DAYS = 30


def get_default_zoom() -> Zoom:
    """Return the configured timeline zoom, defaulting to weekly."""

    override = os.environ.get("TIMELINE_DEFAULT_ZOOM")
    if override and override.strip():
        try:
            return Zoom(override.strip().lower())
        except ValueError:
            logger.warning("Ignoring invalid TIMELINE_DEFAULT_ZOOM=%r", override)
    return DEFAULT_ZOOM


def get_upcoming_window_days() -> int:
    """Return how many days ahead a milestone counts as upcoming."""

    override = os.environ.get("KPI_UPCOMING_WINDOW_DAYS")
    if override and override.strip():
        try:
            value = int(override)
        except ValueError:
            logger.warning("Ignoring invalid KPI_UPCOMING_WINDOW_DAYS=%r", override)
        else:
            if value >= 0:
                return value
            logger.warning("Ignoring negative KPI_UPCOMING_WINDOW_DAYS=%r", override)
    return DEFAULT_UPCOMING_WINDOW_DAYS
