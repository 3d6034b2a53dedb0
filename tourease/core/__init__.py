"""Core utilities for TourEase."""

from .analytics import (
    daily_signups,
    destination_markers,
    is_admin,
    popular_destinations,
)

__all__ = [
    "daily_signups",
    "destination_markers",
    "is_admin",
    "popular_destinations",
]
