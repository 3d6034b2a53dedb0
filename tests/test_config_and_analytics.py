from __future__ import annotations

from datetime import date, datetime, timezone

from tourease.config import DEFAULT_COORDINATES, Settings
from tourease.core import analytics
from tourease.schemas import (
    AuthenticatedUser,
    Destination,
    EnrichmentSource,
    EnrichmentStrategy,
    PreferenceRequest,
    SearchHistoryEntry,
    UserProfile,
)


def test_settings_defaults(monkeypatch):
    for name in (
        "ENRICHMENT_STRATEGY",
        "ENRICHMENT_SOURCE",
        "ADMIN_EMAILS",
        "LLM_TIMEOUT",
        "DEFAULT_LATITUDE",
        "DEFAULT_LONGITUDE",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.enrichment_strategy is EnrichmentStrategy.PIPELINE_DRIVEN
    assert settings.enrichment_source is EnrichmentSource.PLACES
    assert settings.default_coordinates == DEFAULT_COORDINATES
    assert settings.admin_emails == ("admin@tourease.com",)


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("ENRICHMENT_STRATEGY", "MODEL_DRIVEN")
    monkeypatch.setenv("ENRICHMENT_SOURCE", "image_generation")
    monkeypatch.setenv("ADMIN_EMAILS", "a@example.com, b@example.com,")
    monkeypatch.setenv("LLM_TIMEOUT", "12.5")
    monkeypatch.setenv("GOOGLE_MAPS_TIMEOUT", "soon")

    settings = Settings.from_env()

    assert settings.enrichment_strategy is EnrichmentStrategy.MODEL_DRIVEN
    assert settings.enrichment_source is EnrichmentSource.IMAGE_GENERATION
    assert settings.admin_emails == ("a@example.com", "b@example.com")
    assert settings.llm_timeout == 12.5
    assert settings.google_maps_timeout == 10.0


def test_unknown_strategy_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("ENRICHMENT_STRATEGY", "ask-the-oracle")

    assert Settings.from_env().enrichment_strategy is EnrichmentStrategy.PIPELINE_DRIVEN


def _entry(entry_id: str, *destinations: Destination) -> SearchHistoryEntry:
    return SearchHistoryEntry(
        id=entry_id,
        input=PreferenceRequest(budget="low", interests="beach", location="Jakarta"),
        destinations=list(destinations),
    )


def test_is_admin_ignores_case_and_missing_users():
    assert analytics.is_admin(AuthenticatedUser(uid="a", email=" ADMIN@tourease.com "))
    assert not analytics.is_admin(AuthenticatedUser(uid="b", email="guest@example.com"))
    assert not analytics.is_admin(AuthenticatedUser(uid="c"))
    assert not analytics.is_admin(None)


def test_daily_signups_groups_by_day():
    profiles = [
        UserProfile(uid="1", created_at=datetime(2024, 5, 2, 9, tzinfo=timezone.utc)),
        UserProfile(uid="2", created_at=datetime(2024, 5, 1, 23, tzinfo=timezone.utc)),
        UserProfile(uid="3", created_at=datetime(2024, 5, 2, 18, tzinfo=timezone.utc)),
        UserProfile(uid="4"),
    ]

    assert analytics.daily_signups(profiles) == [(date(2024, 5, 1), 1), (date(2024, 5, 2), 2)]


def test_popular_destinations_and_markers():
    kuta = Destination(name="Kuta Beach", latitude=-8.72, longitude=115.17)
    bromo = Destination(name="Mount Bromo", latitude=-7.94, longitude=112.95)
    nameless_coords = Destination(name="Tanah Lot")
    entries = [_entry("1", kuta, bromo), _entry("2", kuta, nameless_coords), _entry("3", bromo, kuta)]

    assert analytics.popular_destinations(entries, limit=2) == [("Kuta Beach", 3), ("Mount Bromo", 2)]
    assert analytics.destination_markers(entries) == [
        {"name": "Kuta Beach", "latitude": -8.72, "longitude": 115.17, "count": 3},
        {"name": "Mount Bromo", "latitude": -7.94, "longitude": 112.95, "count": 2},
    ]


def test_settings_read_limits_and_log_level(monkeypatch):
    monkeypatch.setenv("LLM_MAX_TOKENS", "800")
    monkeypatch.setenv("PLACE_TTL_HOURS", "6")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.llm_max_tokens == 800
    assert settings.place_ttl_hours == 6.0
    assert settings.log_level == "DEBUG"


def test_malformed_limits_fall_back(monkeypatch):
    monkeypatch.setenv("LLM_MAX_TOKENS", "lots")
    monkeypatch.delenv("PLACE_TTL_HOURS", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    settings = Settings.from_env()

    assert settings.llm_max_tokens is None
    assert settings.place_ttl_hours == 24.0
    assert settings.log_level == "INFO"
