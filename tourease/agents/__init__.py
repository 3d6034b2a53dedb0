"""Shared utilities for TourEase's LLM-backed agents."""

from __future__ import annotations

import json
import os
from datetime import date, datetime
from typing import Any, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from tourease.core.llm import LLMClient, llm_json

T = TypeVar("T", bound=BaseModel)


DEFAULT_AGENT_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")


class AgentExecutionError(RuntimeError):
    """Raised when an agent cannot return a valid payload."""


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, set):
        return sorted(value)
    return value


def format_prompt_data(data: Any) -> str:
    """Render arbitrary python data for inclusion in an LLM prompt."""

    return json.dumps(data, indent=2, default=_json_default, ensure_ascii=False)


async def call_llm_and_validate(
    *,
    schema: Type[T],
    prompt: str,
    system_prompt: str,
    prompt_version: str,
    model: Optional[str] = None,
    stop: Optional[Sequence[str]] = None,
    client: Optional[LLMClient] = None,
) -> T:
    """Call the shared LLM helper and validate the JSON payload."""

    try:
        data = await llm_json(
            prompt=prompt,
            system=system_prompt,
            model=model or DEFAULT_AGENT_MODEL,
            stop=stop,
            prompt_version=prompt_version,
            client=client,
        )
    except (json.JSONDecodeError, ValueError) as exc:
        raise AgentExecutionError(f"LLM response was not valid JSON for {schema.__name__}: {exc}") from exc
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise AgentExecutionError(
            f"LLM response could not be validated as {schema.__name__}: {exc}"
        ) from exc


from .assistant import AssistantSession, TravelAssistant
from .imagery import DestinationImageAgent
from .places import PlaceResolver
from .recommender import RecommendationOutcome, RecommenderAgent

__all__ = [
    "AgentExecutionError",
    "AssistantSession",
    "DEFAULT_AGENT_MODEL",
    "DestinationImageAgent",
    "PlaceResolver",
    "RecommendationOutcome",
    "RecommenderAgent",
    "TravelAssistant",
    "call_llm_and_validate",
    "format_prompt_data",
]
