"""Aggregations behind the admin dashboard."""

from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from tourease.schemas import AuthenticatedUser, SearchHistoryEntry, UserProfile

DEFAULT_ADMIN_EMAILS: Tuple[str, ...] = ("admin@tourease.com",)


def is_admin(user: Optional[AuthenticatedUser], admin_emails: Iterable[str] = DEFAULT_ADMIN_EMAILS) -> bool:
    if user is None or not user.email:
        return False
    allowed = {email.strip().lower() for email in admin_emails if email.strip()}
    return user.email.strip().lower() in allowed


def daily_signups(profiles: Iterable[UserProfile]) -> List[Tuple[date, int]]:
    """Count new profiles per calendar day, oldest day first."""

    counts: Counter[date] = Counter(
        profile.created_at.date() for profile in profiles if profile.created_at is not None
    )
    return sorted(counts.items())


def popular_destinations(entries: Iterable[SearchHistoryEntry], limit: int = 10) -> List[Tuple[str, int]]:
    """Destinations recommended most often across searches."""

    counts: Counter[str] = Counter(
        destination.name for entry in entries for destination in entry.destinations
    )
    return counts.most_common(limit)


def destination_markers(entries: Sequence[SearchHistoryEntry]) -> List[Dict[str, object]]:
    """One map marker per destination name that has coordinates, with its search count."""

    markers: Dict[str, Dict[str, object]] = {}
    for entry in entries:
        for destination in entry.destinations:
            if destination.latitude is None or destination.longitude is None:
                continue
            marker = markers.setdefault(
                destination.name,
                {
                    "name": destination.name,
                    "latitude": destination.latitude,
                    "longitude": destination.longitude,
                    "count": 0,
                },
            )
            marker["count"] = int(marker["count"]) + 1  # type: ignore[call-overload]
    return sorted(markers.values(), key=lambda marker: (-int(marker["count"]), str(marker["name"])))  # type: ignore[call-overload]


__all__ = ["DEFAULT_ADMIN_EMAILS", "daily_signups", "destination_markers", "is_admin", "popular_destinations"]
