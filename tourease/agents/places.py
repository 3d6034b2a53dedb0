"""Resolves a destination name to a photo URL and coordinates."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from tourease.config import DEFAULT_COORDINATES, PLACEHOLDER_IMAGE_URL
from tourease.core import google_api
from tourease.schemas import PlaceResult

_LOGGER = logging.getLogger(__name__)


class PlaceResolver:
    """Best-effort lookup against Google Places that never raises.

    A lookup runs text search, then place details, then builds the photo
    URL locally.  The image and the coordinates degrade independently: a
    place without photos still contributes its real coordinates.  When the
    first query finds no photo, one more query prefixed with
    ``query_qualifier`` is tried before settling for the placeholder.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str],
        placeholder_image_url: str = PLACEHOLDER_IMAGE_URL,
        default_coordinates: Tuple[float, float] = DEFAULT_COORDINATES,
        query_qualifier: Optional[str] = "wisata",
        timeout: Optional[float] = None,
        language: Optional[str] = None,
        cache_ttl_hours: Optional[float] = None,
    ) -> None:
        self.api_key = api_key
        self.placeholder_image_url = placeholder_image_url
        self.default_coordinates = default_coordinates
        self.query_qualifier = query_qualifier
        self.timeout = timeout
        self.language = language
        self.cache_ttl_hours = cache_ttl_hours

    def placeholder(self) -> PlaceResult:
        latitude, longitude = self.default_coordinates
        return PlaceResult(image_url=self.placeholder_image_url, latitude=latitude, longitude=longitude)

    async def resolve(self, query: str) -> PlaceResult:
        query = (query or "").strip()
        if not query:
            return self.placeholder()
        if not self.api_key:
            _LOGGER.warning("GOOGLE_MAPS_API_KEY is not configured; using placeholder for %r", query)
            return self.placeholder()

        result, failed = await self._attempt(query, self.placeholder(), self.api_key)
        if result.photo_found or failed or not self.query_qualifier:
            return result

        retry_query = f"{self.query_qualifier} {query}"
        _LOGGER.info("No photo for %r; retrying as %r", query, retry_query)
        retried, _ = await self._attempt(retry_query, result, self.api_key)
        return retried

    async def _attempt(self, query: str, best: PlaceResult, api_key: str) -> Tuple[PlaceResult, bool]:
        """Run one lookup, improving on ``best``; the flag reports an aborted lookup."""

        try:
            candidates = await google_api.find_places(
                query, api_key=api_key, timeout=self.timeout, language=self.language
            )
            if not candidates:
                _LOGGER.info("No place candidates for %r", query)
                return best, False

            candidate = candidates[0]
            best = self._merge(best, candidate)
            place_id = candidate.get("place_id")
            if isinstance(place_id, str) and place_id and not best.photo_found:
                details = await google_api.place_details(
                    place_id, api_key=api_key, timeout=self.timeout, ttl_hours=self.cache_ttl_hours
                )
                best = self._merge(best, details)
        except Exception as exc:  # noqa: BLE001 - any upstream failure keeps the partial result
            _LOGGER.warning("Place lookup for %r aborted: %s", query, exc.__class__.__name__)
            return best, True

        if not best.photo_found:
            _LOGGER.info("No photo found for %r", query)
        return best, False

    def _merge(self, best: PlaceResult, payload: dict) -> PlaceResult:
        update = {}
        if not best.coordinates_found:
            location = google_api.extract_location(payload)
            if location:
                update.update(latitude=location[0], longitude=location[1], coordinates_found=True)
        if not best.photo_found:
            reference = google_api.extract_photo_reference(payload)
            if reference:
                update.update(
                    image_url=google_api.photo_url(reference, api_key=self.api_key or ""),
                    photo_found=True,
                )
        return best.model_copy(update=update) if update else best


__all__ = ["PlaceResolver"]
