"""Agent that recommends destinations matching a traveller's preferences."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError

from tourease.agents import DEFAULT_AGENT_MODEL, format_prompt_data
from tourease.core.llm import LLMClient, ToolCall, default_client
from tourease.schemas import Destination, PlaceResult, PreferenceRequest, RecommendationBatch

_LOGGER = logging.getLogger(__name__)

PlaceLookup = Callable[[str], Awaitable[PlaceResult]]

RESOLVE_PLACE_TOOL = "resolve_place"

_RESOLVE_PLACE_SPEC: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": RESOLVE_PLACE_TOOL,
        "description": (
            "Look up a tourist destination and return a photo URL and its coordinates. "
            "Call it once per recommended destination."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Destination name followed by its region, e.g. 'Kuta Beach Bali'.",
                }
            },
            "required": ["query"],
        },
    },
}


@dataclass
class RecommendationOutcome:
    """Parsed recommender output; ``malformed_reason`` is set when parsing failed."""

    destinations: List[Destination] = field(default_factory=list)
    malformed_reason: Optional[str] = None

    @property
    def malformed(self) -> bool:
        return self.malformed_reason is not None


def parse_recommendations(content: str) -> RecommendationOutcome:
    """Validate raw model output; anything unparseable becomes an empty, flagged outcome."""

    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        return RecommendationOutcome(malformed_reason=f"response is not JSON ({exc.msg})")
    try:
        batch = RecommendationBatch.model_validate(data)
    except ValidationError as exc:
        return RecommendationOutcome(malformed_reason=f"response does not match the schema ({exc.error_count()} errors)")
    return RecommendationOutcome(destinations=batch.destinations)


class RecommenderAgent:
    """Asks the chat model for destinations, optionally letting it look up places itself."""

    system_prompt = (
        "You are a travel expert specialising in tourism in {region}. Recommend several tourist "
        "destinations in {region} that fit the traveller's preferences. Only emit JSON of the form "
        '{{"destinations": [{{"name": str, "description": str, "estimatedCost": str, '
        '"destinationType": str, "imageUrl": str | null, "latitude": number | null, '
        '"longitude": number | null}}]}}.'
    )
    prompt_version = "recommender.v1"

    def __init__(
        self,
        *,
        client: Optional[LLMClient] = None,
        model: Optional[str] = None,
        region: str = "Indonesia",
        max_tool_rounds: int = 3,
    ) -> None:
        self.client = client or default_client()
        self.model = model or DEFAULT_AGENT_MODEL
        self.region = region
        self.max_tool_rounds = max_tool_rounds

    def build_prompt(self, request: PreferenceRequest, *, with_tool: bool) -> str:
        if with_tool:
            media_instruction = (
                f"For every destination call the {RESOLVE_PLACE_TOOL} tool with the destination name "
                "and its region, then copy the returned imageUrl, latitude and longitude into that "
                "destination."
            )
        else:
            media_instruction = "Leave imageUrl, latitude and longitude empty; they are filled in later."
        return (
            "Based on the traveller's preferences, recommend tourist destinations.\n"
            "Give each one a short description, an estimated cost of the trip from the traveller's "
            "location written as plain text, and a destination type (for example Beach, Mountain, "
            "Museum, Culinary, History).\n"
            f"{media_instruction}\n"
            "\n"
            "# Traveller Preferences\n"
            f"{format_prompt_data(request.model_dump(by_alias=True))}\n"
            "\n"
            'Respond with JSON containing a single "destinations" list.'
        )

    async def recommend(
        self,
        request: PreferenceRequest,
        *,
        resolve_place: Optional[PlaceLookup] = None,
    ) -> List[Destination]:
        """Return recommended destinations; ``[]`` covers both "none" and malformed output.

        :class:`tourease.core.llm.OracleUnavailable` propagates to the caller.
        """

        return (await self.run(request, resolve_place=resolve_place)).destinations

    async def run(
        self,
        request: PreferenceRequest,
        *,
        resolve_place: Optional[PlaceLookup] = None,
    ) -> RecommendationOutcome:
        start = time.perf_counter()
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": self.system_prompt.format(region=self.region)},
            {"role": "user", "content": self.build_prompt(request, with_tool=resolve_place is not None)},
        ]

        response: Dict[str, Any] = {}
        tool_rounds = self.max_tool_rounds if resolve_place is not None else 0
        for round_index in range(tool_rounds + 1):
            offer_tool = round_index < tool_rounds
            response = await self.client.complete(
                messages=messages,
                model=self.model,
                prompt_version=self.prompt_version,
                force_json=True,
                tools=[_RESOLVE_PLACE_SPEC] if offer_tool else None,
            )
            try:
                calls = self.client.extract_tool_calls(response) if offer_tool else []
                message = self.client.extract_message(response)
            except ValueError as exc:
                return self._malformed(str(exc))
            if not calls or resolve_place is None:
                break
            messages.append(message)
            results = await asyncio.gather(*(self._run_tool(call, resolve_place) for call in calls))
            for call, result in zip(calls, results):
                messages.append(
                    {"role": "tool", "tool_call_id": call.id, "content": json.dumps(result)}
                )
            _LOGGER.info("Recommender resolved %d places in round %d", len(calls), round_index + 1)

        try:
            content = self.client.extract_content(response)
        except ValueError as exc:
            return self._malformed(str(exc))

        outcome = parse_recommendations(content)
        if outcome.malformed:
            return self._malformed(outcome.malformed_reason or "unknown")

        _LOGGER.info(
            "Recommender returned %d destinations in %.2fs [prompt_version=%s]",
            len(outcome.destinations),
            time.perf_counter() - start,
            self.prompt_version,
        )
        return outcome

    def _malformed(self, reason: str) -> RecommendationOutcome:
        _LOGGER.warning(
            "Discarding malformed recommender output: %s [prompt_version=%s]",
            reason,
            self.prompt_version,
        )
        return RecommendationOutcome(malformed_reason=reason)

    async def _run_tool(self, call: ToolCall, resolve_place: PlaceLookup) -> Dict[str, Any]:
        if call.name != RESOLVE_PLACE_TOOL:
            return {"error": f"Unknown tool {call.name!r}"}
        query = str(call.arguments.get("query") or "")
        try:
            result = await resolve_place(query)
        except Exception as exc:  # noqa: BLE001 - the model gets an error payload instead of a crash
            _LOGGER.warning("Place tool failed for %r: %s", query, exc)
            return {"error": "Place lookup failed"}
        return result.as_tool_payload()


__all__ = ["RESOLVE_PLACE_TOOL", "RecommendationOutcome", "RecommenderAgent", "parse_recommendations"]
