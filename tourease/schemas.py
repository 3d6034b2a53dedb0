"""Data schemas for the TourEase application."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


class EnrichmentStrategy(str, Enum):
    """Who resolves media and coordinates for recommended destinations."""

    MODEL_DRIVEN = "model_driven"
    PIPELINE_DRIVEN = "pipeline_driven"


class EnrichmentSource(str, Enum):
    """Per-destination operation used by pipeline driven enrichment."""

    PLACES = "places"
    IMAGE_GENERATION = "image_generation"


class PreferenceRequest(BaseModel):
    """Travel preferences submitted from the search form."""

    budget: str
    interests: str
    party_size: str = Field(
        default="",
        validation_alias=AliasChoices(
            "party_size", "partySize", "numberOfPeople", "number_of_people", "travelStyle", "travel_style"
        ),
        serialization_alias="numberOfPeople",
    )
    location: str

    model_config = ConfigDict(frozen=True, populate_by_name=True, str_strip_whitespace=True)

    @field_validator("budget", "interests", "location")
    @classmethod
    def _require_text(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be empty")
        return value


class PlaceResult(BaseModel):
    """Best-effort photo and coordinates for a place query."""

    image_url: str
    latitude: float
    longitude: float
    photo_found: bool = False
    coordinates_found: bool = False

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def as_tool_payload(self) -> Dict[str, Any]:
        return {"imageUrl": self.image_url, "latitude": self.latitude, "longitude": self.longitude}


class Destination(BaseModel):
    """A recommended travel destination."""

    name: str = Field(min_length=1)
    description: str = ""
    estimated_cost: str = ""
    destination_type: str = Field(
        default="",
        validation_alias=AliasChoices("destination_type", "destinationType", "type"),
    )
    image_url: Optional[str] = None
    latitude: Optional[float] = Field(default=None, validation_alias=AliasChoices("latitude", "lat"))
    longitude: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("longitude", "lng", "lon"),
    )

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    @model_validator(mode="before")
    @classmethod
    def _coerce_llm_variants(cls, data: object) -> object:
        """Normalise common deviations produced by the recommender LLM."""

        if not isinstance(data, dict):
            return data

        payload = dict(data)
        for key in ("estimatedCost", "estimated_cost", "cost"):
            value = payload.get(key)
            if value is not None and not isinstance(value, str):
                payload[key] = str(value)
        if "cost" in payload and "estimatedCost" not in payload and "estimated_cost" not in payload:
            payload["estimatedCost"] = payload.pop("cost")
        for key in ("imageUrl", "image_url"):
            if key in payload and not payload[key]:
                payload[key] = None
        return payload

    def without_media(self) -> "Destination":
        return self.model_copy(update={"image_url": None})

    def with_place(self, result: PlaceResult) -> "Destination":
        """Return a copy carrying only the parts of ``result`` the provider really found."""

        update: Dict[str, Any] = {}
        if result.photo_found:
            update["image_url"] = result.image_url
        if result.coordinates_found:
            update["latitude"] = result.latitude
            update["longitude"] = result.longitude
        return self.model_copy(update=update)

    def to_document(self, *, include_image: bool = True) -> Dict[str, Any]:
        exclude = set() if include_image else {"image_url"}
        return self.model_dump(by_alias=True, exclude=exclude, exclude_none=True)


class RecommendationBatch(BaseModel):
    """Validated shape of the recommender's structured output."""

    destinations: List[Destination] = Field(
        default_factory=list,
        validation_alias=AliasChoices("destinations", "recommendations", "results"),
    )

    @model_validator(mode="before")
    @classmethod
    def _unwrap_common_wrappers(cls, data: object) -> object:
        """Accept a bare list and drop entries that cannot be destinations."""

        if isinstance(data, list):
            data = {"destinations": data}
        if not isinstance(data, dict):
            return data

        payload = dict(data)
        keys = [key for key in ("destinations", "recommendations", "results") if key in payload]
        if not keys:
            raise ValueError("response does not contain a destinations list")
        for key in keys:
            items = payload[key]
            if isinstance(items, dict):
                items = [items]
            if not isinstance(items, list):
                continue
            kept: List[Destination] = []
            for item in items:
                try:
                    kept.append(Destination.model_validate(item))
                except ValidationError:
                    continue
            payload[key] = kept
        return payload


class SearchHistoryEntry(BaseModel):
    """A past search and the destinations it produced."""

    id: str
    input: PreferenceRequest
    destinations: List[Destination] = Field(default_factory=list)
    searched_at: Optional[datetime] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SavedDestination(Destination):
    """A destination bookmarked by a user."""

    saved_at: Optional[datetime] = None


class AuthenticatedUser(BaseModel):
    """The signed-in user as reported by the identity provider."""

    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    provider_id: str = "password"

    @classmethod
    def from_supabase_user(cls, raw: Mapping[str, Any]) -> "AuthenticatedUser":
        """Parse the ``user`` object of a Supabase auth response."""

        metadata = raw.get("user_metadata") or {}
        app_metadata = raw.get("app_metadata") or {}
        if not isinstance(metadata, Mapping):
            metadata = {}
        if not isinstance(app_metadata, Mapping):
            app_metadata = {}
        return cls(
            uid=str(raw.get("id") or ""),
            email=raw.get("email"),
            display_name=metadata.get("full_name") or metadata.get("name"),
            photo_url=metadata.get("avatar_url") or metadata.get("picture"),
            provider_id=str(app_metadata.get("provider") or "password"),
        )

    @field_validator("uid")
    @classmethod
    def _require_uid(cls, value: str) -> str:
        if not value:
            raise ValueError("uid must not be empty")
        return value


class UserProfile(BaseModel):
    """Profile document created on a user's first sign in."""

    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("photo_url", "photoURL", "photoUrl"),
        serialization_alias="photoURL",
    )
    provider_id: str = "password"
    created_at: Optional[datetime] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AssistantAnswer(BaseModel):
    """Structured output of the travel assistant prompt."""

    answer: str = Field(validation_alias=AliasChoices("answer", "response", "reply"))


class AssistantReply(BaseModel):
    """Result of one assistant turn; exactly one of ``answer``/``error`` is set."""

    destination: str
    question: str
    answer: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.answer is not None


__all__ = [
    "AssistantAnswer",
    "AssistantReply",
    "AuthenticatedUser",
    "Destination",
    "EnrichmentSource",
    "EnrichmentStrategy",
    "PlaceResult",
    "PreferenceRequest",
    "RecommendationBatch",
    "SavedDestination",
    "SearchHistoryEntry",
    "UserProfile",
]
