from __future__ import annotations

import asyncio
import json

import pytest

from tourease.agents.recommender import RESOLVE_PLACE_TOOL, RecommenderAgent, parse_recommendations
from tourease.core.llm import OracleUnavailable
from tourease.schemas import PlaceResult, PreferenceRequest

REQUEST = PreferenceRequest(budget="low", interests="beach", location="Jakarta")

KUTA = {
    "name": "Kuta Beach",
    "description": "Surf and sunsets in Bali.",
    "estimatedCost": "Rp 500.000",
    "destinationType": "Beach",
}


def test_recommend_returns_destinations_in_order(scripted_llm, responses):
    llm = scripted_llm(
        [responses.content({"destinations": [KUTA, {"name": "Tanah Lot", "type": "Temple", "cost": 150000}]})]
    )
    agent = RecommenderAgent(client=llm)

    destinations = asyncio.run(agent.recommend(REQUEST))

    assert [destination.name for destination in destinations] == ["Kuta Beach", "Tanah Lot"]
    assert destinations[1].destination_type == "Temple"
    assert destinations[1].estimated_cost == "150000"
    call = llm.calls[0]
    assert call["force_json"] is True
    assert call["tools"] is None
    assert call["prompt_version"] == "recommender.v1"
    assert "Jakarta" in call["messages"][1]["content"]


def test_empty_list_is_a_valid_answer(scripted_llm, responses):
    agent = RecommenderAgent(client=scripted_llm([responses.content({"destinations": []})]))

    outcome = asyncio.run(agent.run(REQUEST))

    assert outcome.destinations == []
    assert not outcome.malformed


@pytest.mark.parametrize(
    "content",
    ["I would suggest Bali!", json.dumps({"places": ["Bali"]}), json.dumps("Bali")],
)
def test_malformed_output_is_flagged_and_returns_empty(scripted_llm, responses, content):
    agent = RecommenderAgent(client=scripted_llm([responses.content(content)]))

    outcome = asyncio.run(agent.run(REQUEST))

    assert outcome.malformed
    assert outcome.destinations == []


def test_entries_without_a_name_are_dropped():
    outcome = parse_recommendations(json.dumps([KUTA, {"description": "nameless"}, {"name": ""}]))

    assert not outcome.malformed
    assert [destination.name for destination in outcome.destinations] == ["Kuta Beach"]


def test_oracle_failure_propagates(scripted_llm):
    agent = RecommenderAgent(client=scripted_llm([OracleUnavailable("status 503")]))

    with pytest.raises(OracleUnavailable):
        asyncio.run(agent.recommend(REQUEST))


def test_model_driven_tool_loop_feeds_place_results_back(scripted_llm, responses):
    final = dict(KUTA, imageUrl="https://maps.example/photo123", latitude=-8.72, longitude=115.17)
    llm = scripted_llm(
        [
            responses.tool_calls("Kuta Beach Bali"),
            responses.content({"destinations": [final]}),
        ]
    )
    lookups = []

    async def resolve_place(query):
        lookups.append(query)
        return PlaceResult(
            image_url="https://maps.example/photo123",
            latitude=-8.72,
            longitude=115.17,
            photo_found=True,
            coordinates_found=True,
        )

    destinations = asyncio.run(RecommenderAgent(client=llm).recommend(REQUEST, resolve_place=resolve_place))

    assert lookups == ["Kuta Beach Bali"]
    assert destinations[0].image_url == "https://maps.example/photo123"
    assert llm.calls[0]["tools"][0]["function"]["name"] == RESOLVE_PLACE_TOOL
    tool_message = llm.calls[1]["messages"][-1]
    assert tool_message["role"] == "tool"
    assert tool_message["tool_call_id"] == "call_0"
    assert json.loads(tool_message["content"]) == {
        "imageUrl": "https://maps.example/photo123",
        "latitude": -8.72,
        "longitude": 115.17,
    }


def test_tool_failure_is_reported_to_the_model(scripted_llm, responses):
    llm = scripted_llm([responses.tool_calls("Kuta"), responses.content({"destinations": [KUTA]})])

    async def resolve_place(query):
        raise RuntimeError("boom")

    destinations = asyncio.run(RecommenderAgent(client=llm).recommend(REQUEST, resolve_place=resolve_place))

    assert [destination.name for destination in destinations] == ["Kuta Beach"]
    assert json.loads(llm.calls[1]["messages"][-1]["content"]) == {"error": "Place lookup failed"}


def test_tool_rounds_are_bounded(scripted_llm, responses):
    llm = scripted_llm(
        [
            responses.tool_calls("a"),
            responses.tool_calls("b"),
            responses.content({"destinations": [KUTA]}),
        ]
    )

    async def resolve_place(query):
        return PlaceResult(image_url="x", latitude=0.0, longitude=0.0)

    agent = RecommenderAgent(client=llm, max_tool_rounds=1)
    destinations = asyncio.run(agent.recommend(REQUEST, resolve_place=resolve_place))

    # the second tool request is ignored because tools are no longer offered; its content is missing
    assert destinations == []
    assert llm.calls[1]["tools"] is None
