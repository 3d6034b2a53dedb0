from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import httpx
import pytest

from tourease.agents.places import PlaceResolver
from tourease.config import DEFAULT_COORDINATES, PLACEHOLDER_IMAGE_URL
from tourease.core import google_api


def _candidate(place_id: str, *, photo: str | None = None, lat: float = -8.72, lng: float = 115.17) -> Dict[str, Any]:
    candidate: Dict[str, Any] = {"place_id": place_id, "geometry": {"location": {"lat": lat, "lng": lng}}}
    if photo:
        candidate["photos"] = [{"photo_reference": photo}]
    return candidate


class FakePlaces:
    def __init__(self, searches: Dict[str, Any], details: Dict[str, Any] | None = None):
        self.searches = searches
        self.details = details or {}
        self.search_queries: List[str] = []
        self.detail_ids: List[str] = []
        self.detail_ttls: List[object] = []

    async def find_places(self, query, *, api_key, timeout=None, language=None):
        self.search_queries.append(query)
        result = self.searches.get(query, [])
        if isinstance(result, BaseException):
            raise result
        return result

    async def place_details(self, place_id, *, api_key, timeout=None, ttl_hours=None):
        self.detail_ids.append(place_id)
        self.detail_ttls.append(ttl_hours)
        result = self.details.get(place_id, {})
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def places(monkeypatch: pytest.MonkeyPatch):
    def install(searches, details=None) -> FakePlaces:
        fake = FakePlaces(searches, details)
        monkeypatch.setattr(google_api, "find_places", fake.find_places)
        monkeypatch.setattr(google_api, "place_details", fake.place_details)
        return fake

    return install


def _resolver(**kwargs) -> PlaceResolver:
    return PlaceResolver(api_key="maps-key", **kwargs)


@pytest.mark.parametrize("query", ["", "   ", "zxqv-no-such-place"])
def test_unmatched_queries_return_placeholder_and_default_coordinates(places, query):
    fake = places({})

    result = asyncio.run(_resolver().resolve(query))

    assert result.image_url == PLACEHOLDER_IMAGE_URL
    assert (result.latitude, result.longitude) == DEFAULT_COORDINATES
    assert not result.photo_found and not result.coordinates_found
    if not query.strip():
        assert fake.search_queries == []


def test_missing_api_key_skips_lookup(places):
    fake = places({"Kuta Beach": [_candidate("kuta", photo="photo123")]})

    result = asyncio.run(PlaceResolver(api_key=None).resolve("Kuta Beach"))

    assert result.image_url == PLACEHOLDER_IMAGE_URL
    assert fake.search_queries == []


def test_photo_from_text_search_skips_details(places):
    fake = places({"Kuta Beach": [_candidate("kuta", photo="photo123")]})

    result = asyncio.run(_resolver().resolve("Kuta Beach"))

    assert result.photo_found and result.coordinates_found
    assert "photoreference=photo123" in result.image_url
    assert "maxwidth=800" in result.image_url
    assert (result.latitude, result.longitude) == (-8.72, 115.17)
    assert fake.detail_ids == []


def test_photo_from_details_when_search_has_none(places):
    fake = places(
        {"Kawah Ijen": [_candidate("ijen", lat=-8.06, lng=114.24)]},
        {"ijen": {"photos": [{"photo_reference": "ijen-photo"}]}},
    )

    result = asyncio.run(_resolver(cache_ttl_hours=6.0).resolve("Kawah Ijen"))

    assert fake.detail_ids == ["ijen"]
    assert fake.detail_ttls == [6.0]
    assert "photoreference=ijen-photo" in result.image_url
    assert (result.latitude, result.longitude) == (-8.06, 114.24)


def test_place_without_photo_keeps_real_coordinates(places):
    fake = places({"Pulau Kecil": [_candidate("kecil", lat=-5.5, lng=120.1)]})

    result = asyncio.run(_resolver().resolve("Pulau Kecil"))

    assert result.image_url == PLACEHOLDER_IMAGE_URL
    assert not result.photo_found
    assert result.coordinates_found
    assert (result.latitude, result.longitude) == (-5.5, 120.1)
    assert fake.search_queries == ["Pulau Kecil", "wisata Pulau Kecil"]


def test_qualified_retry_can_find_the_photo(places):
    places(
        {
            "Tanjung Aan": [_candidate("aan-1", lat=-8.91, lng=116.32)],
            "wisata Tanjung Aan": [_candidate("aan-2", photo="aan-photo", lat=0.0, lng=0.0)],
        }
    )

    result = asyncio.run(_resolver().resolve("Tanjung Aan"))

    assert "photoreference=aan-photo" in result.image_url
    # coordinates from the first attempt are kept
    assert (result.latitude, result.longitude) == (-8.91, 116.32)


def test_retry_can_be_disabled(places):
    fake = places({})

    asyncio.run(_resolver(query_qualifier=None).resolve("Somewhere"))

    assert fake.search_queries == ["Somewhere"]


def test_upstream_failure_returns_best_partial_without_retry(places):
    fake = places(
        {"Raja Ampat": [_candidate("raja", lat=-0.23, lng=130.52)]},
        {"raja": httpx.ReadTimeout("slow")},
    )

    result = asyncio.run(_resolver().resolve("Raja Ampat"))

    assert result.image_url == PLACEHOLDER_IMAGE_URL
    assert (result.latitude, result.longitude) == (-0.23, 130.52)
    assert fake.search_queries == ["Raja Ampat"]


def test_search_failure_never_raises(places):
    places({"Borobudur": google_api.GoogleMapsError("REQUEST_DENIED")})

    result = asyncio.run(_resolver().resolve("Borobudur"))

    assert result.image_url == PLACEHOLDER_IMAGE_URL
    assert (result.latitude, result.longitude) == DEFAULT_COORDINATES
