"""Thin async wrapper around the Google Maps Places HTTP APIs."""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlencode

import httpx

_GOOGLE_MAPS_BASE_URL = "https://maps.googleapis.com/maps/api"
_DEFAULT_TIMEOUT = float(os.getenv("GOOGLE_MAPS_TIMEOUT", "10"))
_PHOTO_MAX_WIDTH = 800

_DETAILS_CACHE: Dict[str, Tuple[Dict[str, object], datetime]] = {}


class GoogleMapsError(RuntimeError):
    """Raised when the Google Maps API returns an unexpected response."""


async def _request(
    path: str,
    params: Dict[str, object],
    *,
    api_key: str,
    timeout: Optional[float] = None,
) -> Dict[str, object]:
    params = {**params, "key": api_key}
    async with httpx.AsyncClient(timeout=timeout if timeout is not None else _DEFAULT_TIMEOUT) as client:
        response = await client.get(
            f"{_GOOGLE_MAPS_BASE_URL.rstrip('/')}/{path.lstrip('/')}",
            params=params,
        )
    response.raise_for_status()
    data = response.json()
    status = data.get("status")
    if status and status not in {"OK", "ZERO_RESULTS"}:
        message = data.get("error_message") or status
        raise GoogleMapsError(f"Google Maps API error: {message}")
    return data


async def find_places(
    query: str,
    *,
    api_key: str,
    timeout: Optional[float] = None,
    language: Optional[str] = None,
) -> List[Dict[str, object]]:
    """Search for places using a free text query."""

    params: Dict[str, object] = {"query": query}
    if language:
        params["language"] = language
    data = await _request("place/textsearch/json", params, api_key=api_key, timeout=timeout)
    results = data.get("results") or []
    return [result for result in results if isinstance(result, dict)]  # type: ignore[union-attr]


def _place_ttl_hours() -> float:
    ttl_env = os.getenv("PLACE_TTL_HOURS")
    if not ttl_env:
        return 24.0
    try:
        return float(ttl_env)
    except ValueError:
        return 24.0


def clear_details_cache() -> None:
    """Forget every cached place details payload."""

    _DETAILS_CACHE.clear()


async def place_details(
    place_id: str,
    *,
    api_key: str,
    timeout: Optional[float] = None,
    ttl_hours: Optional[float] = None,
) -> Dict[str, object]:
    """Return the photo and geometry details for a place, using an in-process cache.

    ``ttl_hours`` defaults to ``PLACE_TTL_HOURS``; expired entries are evicted on read.
    """

    cached = _DETAILS_CACHE.get(place_id)
    ttl = timedelta(hours=ttl_hours if ttl_hours is not None else _place_ttl_hours())
    if cached:
        cached_value, updated_at = cached
        if datetime.now(timezone.utc) - updated_at <= ttl:
            return dict(cached_value)
        del _DETAILS_CACHE[place_id]

    data = await _request(
        "place/details/json",
        {"place_id": place_id, "fields": "place_id,name,geometry/location,photos"},
        api_key=api_key,
        timeout=timeout,
    )
    result = data.get("result")
    if not isinstance(result, dict):
        raise GoogleMapsError("Place details response did not contain a result")
    _DETAILS_CACHE[place_id] = (dict(result), datetime.now(timezone.utc))
    return result


def extract_location(result: Dict[str, object]) -> Optional[Tuple[float, float]]:
    """Return ``(lat, lng)`` from a search or details result if present."""

    geometry = result.get("geometry") or {}
    location = geometry.get("location") if isinstance(geometry, dict) else None
    if not isinstance(location, dict):
        return None
    lat = location.get("lat")
    lng = location.get("lng")
    if isinstance(lat, (int, float)) and isinstance(lng, (int, float)):
        return float(lat), float(lng)
    return None


def extract_photo_reference(result: Dict[str, object]) -> Optional[str]:
    """Return the first photo reference from a search or details result."""

    photos = result.get("photos") or []
    if isinstance(photos, list) and photos:
        first_photo = photos[0] or {}
        if isinstance(first_photo, dict):
            reference = first_photo.get("photo_reference")
            if isinstance(reference, str) and reference:
                return reference
    return None


def photo_url(photo_reference: str, *, api_key: str, max_width: int = _PHOTO_MAX_WIDTH) -> str:
    """Build the media URL for a photo reference without fetching it."""

    query = urlencode(
        {"maxwidth": max_width, "photoreference": photo_reference, "key": api_key}
    )
    return f"{_GOOGLE_MAPS_BASE_URL}/place/photo?{query}"


__all__ = [
    "GoogleMapsError",
    "clear_details_cache",
    "extract_location",
    "extract_photo_reference",
    "find_places",
    "photo_url",
    "place_details",
]
