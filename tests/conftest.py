from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pytest

from tourease.core.llm import LLMClient, OracleUnavailable
from tourease.schemas import PlaceResult


def content_response(payload: Any) -> Dict[str, Any]:
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def tool_call_response(*queries: str) -> Dict[str, Any]:
    return {
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": f"call_{index}",
                            "type": "function",
                            "function": {"name": "resolve_place", "arguments": json.dumps({"query": query})},
                        }
                        for index, query in enumerate(queries)
                    ],
                }
            }
        ]
    }


class ScriptedLLM(LLMClient):
    """Returns queued responses; an exception in the queue is raised instead."""

    def __init__(self, responses: Sequence[Any]):
        super().__init__(model="test-model", api_key="test-key")
        self.responses: List[Any] = list(responses)
        self.calls: List[Dict[str, Any]] = []

    async def complete(
        self,
        *,
        messages: Sequence[Mapping[str, Any]],
        model: Optional[str] = None,
        stop: Optional[Sequence[str]] = None,
        prompt_version: str,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
        max_tokens: Optional[int] = None,
        force_json: bool = False,
        tools: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> Dict[str, Any]:
        self.calls.append(
            {
                "messages": [dict(message) for message in messages],
                "model": model,
                "prompt_version": prompt_version,
                "force_json": force_json,
                "tools": list(tools) if tools else None,
            }
        )
        if not self.responses:
            raise OracleUnavailable("no scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class FakeResolver:
    """Stands in for PlaceResolver; results are keyed by query."""

    placeholder_image_url = "https://placehold.co/600x400.png"
    default_coordinates = (-2.5489, 118.0149)

    def __init__(self, results: Optional[Dict[str, Any]] = None, delays: Optional[Dict[str, float]] = None):
        self.results = results or {}
        self.delays = delays or {}
        self.queries: List[str] = []

    def placeholder(self) -> PlaceResult:
        latitude, longitude = self.default_coordinates
        return PlaceResult(image_url=self.placeholder_image_url, latitude=latitude, longitude=longitude)

    async def resolve(self, query: str) -> PlaceResult:
        self.queries.append(query)
        delay = self.delays.get(query)
        if delay:
            await asyncio.sleep(delay)
        result = self.results.get(query)
        if isinstance(result, BaseException):
            raise result
        return result or self.placeholder()


@pytest.fixture
def scripted_llm():
    return ScriptedLLM


@pytest.fixture
def fake_resolver():
    return FakeResolver


@pytest.fixture
def responses():
    class _Responses:
        content = staticmethod(content_response)
        tool_calls = staticmethod(tool_call_response)

    return _Responses
