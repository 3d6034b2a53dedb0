from __future__ import annotations

import pytest
from pydantic import ValidationError

from tourease.schemas import (
    AuthenticatedUser,
    Destination,
    PlaceResult,
    PreferenceRequest,
    RecommendationBatch,
)


def test_preference_request_accepts_form_field_names():
    request = PreferenceRequest.model_validate(
        {"budget": " low ", "interests": "beach", "numberOfPeople": "4", "location": "Jakarta"}
    )

    assert request.budget == "low"
    assert request.party_size == "4"
    assert request.model_dump(by_alias=True)["numberOfPeople"] == "4"


def test_preference_request_requires_location():
    with pytest.raises(ValidationError):
        PreferenceRequest(budget="low", interests="beach", location="  ")


def test_destination_normalises_llm_variants():
    destination = Destination.model_validate(
        {"name": "Tanah Lot", "type": "Temple", "cost": 150000, "lat": -8.62, "lng": 115.09, "imageUrl": ""}
    )

    assert destination.destination_type == "Temple"
    assert destination.estimated_cost == "150000"
    assert (destination.latitude, destination.longitude) == (-8.62, 115.09)
    assert destination.image_url is None


def test_with_place_only_copies_what_was_found():
    destination = Destination(name="Pulau Kecil", latitude=1.0, longitude=2.0)
    coordinates_only = PlaceResult(
        image_url="https://placehold.co/600x400.png",
        latitude=-5.5,
        longitude=120.1,
        coordinates_found=True,
    )
    nothing = PlaceResult(image_url="https://placehold.co/600x400.png", latitude=-2.5, longitude=118.0)

    enriched = destination.with_place(coordinates_only)
    untouched = destination.with_place(nothing)

    assert enriched.image_url is None
    assert (enriched.latitude, enriched.longitude) == (-5.5, 120.1)
    assert untouched == destination


def test_to_document_can_strip_images():
    destination = Destination(name="Kuta Beach", image_url="https://img", latitude=-8.72, longitude=115.17)

    assert destination.to_document(include_image=False) == {
        "name": "Kuta Beach",
        "description": "",
        "estimatedCost": "",
        "destinationType": "",
        "latitude": -8.72,
        "longitude": 115.17,
    }
    assert destination.to_document()["imageUrl"] == "https://img"


@pytest.mark.parametrize(
    "payload",
    [
        [{"name": "Kuta"}],
        {"recommendations": [{"name": "Kuta"}]},
        {"destinations": {"name": "Kuta"}},
    ],
)
def test_recommendation_batch_accepts_common_shapes(payload):
    batch = RecommendationBatch.model_validate(payload)

    assert [destination.name for destination in batch.destinations] == ["Kuta"]


def test_recommendation_batch_rejects_missing_list():
    with pytest.raises(ValidationError):
        RecommendationBatch.model_validate({"answer": "Bali"})


def test_authenticated_user_from_supabase_payload():
    user = AuthenticatedUser.from_supabase_user(
        {
            "id": "abc",
            "email": "ayu@example.com",
            "user_metadata": {"full_name": "Ayu", "avatar_url": "https://avatar"},
            "app_metadata": {"provider": "google"},
        }
    )

    assert user.uid == "abc"
    assert user.display_name == "Ayu"
    assert user.photo_url == "https://avatar"
    assert user.provider_id == "google"

    with pytest.raises(ValidationError):
        AuthenticatedUser.from_supabase_user({"email": "nobody@example.com"})
