"""Runtime configuration read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

from tourease.schemas import EnrichmentSource, EnrichmentStrategy

_LOGGER = logging.getLogger(__name__)

PLACEHOLDER_IMAGE_URL = "https://placehold.co/600x400.png"
# Geographic centre of Indonesia
DEFAULT_COORDINATES = (-2.5489, 118.0149)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        _LOGGER.warning("Ignoring non-numeric %s=%r", name, raw)
        return default


def _int_env(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        _LOGGER.warning("Ignoring non-integer %s=%r", name, raw)
        return None


def _enum_env(name: str, enum_type, default):
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return enum_type(raw.strip().lower())
    except ValueError:
        _LOGGER.warning("Ignoring unknown %s=%r", name, raw)
        return default


@dataclass(frozen=True)
class Settings:
    """Configuration shared by the services."""

    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    openai_image_model: str = "dall-e-3"
    llm_temperature: float = 0.7
    llm_timeout: float = 60.0
    llm_max_tokens: Optional[int] = None
    image_timeout: float = 90.0
    google_maps_api_key: Optional[str] = None
    google_maps_timeout: float = 10.0
    place_ttl_hours: float = 24.0
    placeholder_image_url: str = PLACEHOLDER_IMAGE_URL
    default_coordinates: Tuple[float, float] = DEFAULT_COORDINATES
    place_query_qualifier: str = "wisata"
    tourist_region: str = "Indonesia"
    enrichment_strategy: EnrichmentStrategy = EnrichmentStrategy.PIPELINE_DRIVEN
    enrichment_source: EnrichmentSource = EnrichmentSource.PLACES
    enrichment_timeout: float = 20.0
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_documents_table: str = "documents"
    admin_emails: Tuple[str, ...] = field(default_factory=lambda: ("admin@tourease.com",))
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        admin_raw = os.getenv("ADMIN_EMAILS")
        admin_emails = (
            tuple(email.strip() for email in admin_raw.split(",") if email.strip())
            if admin_raw
            else ("admin@tourease.com",)
        )
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            openai_image_model=os.getenv("OPENAI_IMAGE_MODEL", "dall-e-3"),
            llm_temperature=_float_env("LLM_TEMPERATURE", 0.7),
            llm_timeout=_float_env("LLM_TIMEOUT", 60.0),
            llm_max_tokens=_int_env("LLM_MAX_TOKENS"),
            image_timeout=_float_env("IMAGE_TIMEOUT", 90.0),
            google_maps_api_key=os.getenv("GOOGLE_MAPS_API_KEY"),
            google_maps_timeout=_float_env("GOOGLE_MAPS_TIMEOUT", 10.0),
            place_ttl_hours=_float_env("PLACE_TTL_HOURS", 24.0),
            placeholder_image_url=os.getenv("PLACEHOLDER_IMAGE_URL", PLACEHOLDER_IMAGE_URL),
            default_coordinates=(
                _float_env("DEFAULT_LATITUDE", DEFAULT_COORDINATES[0]),
                _float_env("DEFAULT_LONGITUDE", DEFAULT_COORDINATES[1]),
            ),
            place_query_qualifier=os.getenv("PLACE_QUERY_QUALIFIER", "wisata"),
            tourist_region=os.getenv("TOURIST_REGION", "Indonesia"),
            enrichment_strategy=_enum_env(
                "ENRICHMENT_STRATEGY", EnrichmentStrategy, EnrichmentStrategy.PIPELINE_DRIVEN
            ),
            enrichment_source=_enum_env("ENRICHMENT_SOURCE", EnrichmentSource, EnrichmentSource.PLACES),
            enrichment_timeout=_float_env("ENRICHMENT_TIMEOUT", 20.0),
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY"),
            supabase_documents_table=os.getenv("SUPABASE_DOCUMENTS_TABLE", "documents"),
            admin_emails=admin_emails,
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )


def configure() -> Settings:
    """Load ``.env``, configure logging and return the active settings."""

    load_dotenv()
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return settings


__all__ = ["DEFAULT_COORDINATES", "PLACEHOLDER_IMAGE_URL", "Settings", "configure"]
