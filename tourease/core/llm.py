"""Centralised LLM client utilities."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Sequence

import httpx


DEFAULT_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
DEFAULT_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
DEFAULT_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60"))
_MAX_TOKENS_ENV = os.getenv("LLM_MAX_TOKENS")
DEFAULT_MAX_TOKENS: Optional[int] = int(_MAX_TOKENS_ENV) if _MAX_TOKENS_ENV else None


_LOGGER = logging.getLogger(__name__)


class OracleUnavailable(RuntimeError):
    """Raised when the hosted model cannot be reached or refuses the request."""

    user_message = "The recommendation service is unavailable right now. Please try again."


def _clean_dict(payload: MutableMapping[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


@dataclass
class ToolCall:
    """A single tool invocation requested by the model."""

    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMClient:
    """A small convenience wrapper for calling chat based LLM APIs."""

    model: str = DEFAULT_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    timeout: Optional[float] = DEFAULT_TIMEOUT
    max_tokens: Optional[int] = DEFAULT_MAX_TOKENS
    api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")

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
        """Send a prepared message list and return the raw completion payload."""

        payload: Dict[str, Any] = {
            "model": model or self.model,
            "messages": list(messages),
            "temperature": temperature if temperature is not None else self.temperature,
            "max_tokens": max_tokens if max_tokens is not None else self.max_tokens,
            "stop": list(stop) if stop else None,
            "user": prompt_version,
            "response_format": {"type": "json_object"} if force_json else None,
            "tools": list(tools) if tools else None,
        }

        payload = _clean_dict(payload)

        _LOGGER.debug(
            "Calling chat completion model %s [prompt_version=%s]",
            payload["model"],
            prompt_version,
        )

        request_timeout = timeout if timeout is not None else self.timeout
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(timeout=request_timeout) as client:
                response = await client.post(
                    f"{self.base_url.rstrip('/')}/chat/completions",
                    json=payload,
                    headers=headers,
                )
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as exc:
            raise OracleUnavailable(
                f"Chat completion failed with status {exc.response.status_code} "
                f"[prompt_version={prompt_version}]"
            ) from exc
        except httpx.HTTPError as exc:
            raise OracleUnavailable(
                f"Chat completion request failed: {exc.__class__.__name__} "
                f"[prompt_version={prompt_version}]"
            ) from exc

    async def chat(
        self,
        *,
        prompt: str,
        system: str,
        model: Optional[str] = None,
        stop: Optional[Sequence[str]] = None,
        prompt_version: str,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
        max_tokens: Optional[int] = None,
        force_json: bool = False,
    ) -> Dict[str, Any]:
        """Call the backing LLM API with a system and user prompt."""

        messages: List[Dict[str, str]] = [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]

        if force_json:
            messages.append(
                {
                    "role": "system",
                    "content": "You must respond with a valid JSON object and nothing else.",
                }
            )

        return await self.complete(
            messages=messages,
            model=model,
            stop=stop,
            prompt_version=prompt_version,
            temperature=temperature,
            timeout=timeout,
            max_tokens=max_tokens,
            force_json=force_json,
        )

    @staticmethod
    def extract_message(response: Mapping[str, Any]) -> Dict[str, Any]:
        """Return the first assistant message of a chat completion response."""

        choices = response.get("choices")
        if not choices:
            raise ValueError("LLM response did not contain any choices")
        message = choices[0].get("message")
        if not isinstance(message, dict):
            raise ValueError("LLM response did not contain a message")
        return message

    @classmethod
    def extract_content(cls, response: Mapping[str, Any]) -> str:
        """Extract the assistant message content from a chat completion response."""

        content = cls.extract_message(response).get("content")
        if content is None:
            raise ValueError("LLM response did not contain content")
        return content

    @classmethod
    def extract_tool_calls(cls, response: Mapping[str, Any]) -> List[ToolCall]:
        """Return the tool calls requested in a chat completion response."""

        raw_calls = cls.extract_message(response).get("tool_calls") or []
        calls: List[ToolCall] = []
        for raw in raw_calls:
            function = raw.get("function") or {}
            arguments = function.get("arguments") or "{}"
            try:
                parsed = json.loads(arguments) if isinstance(arguments, str) else dict(arguments)
            except (json.JSONDecodeError, TypeError, ValueError):
                parsed = {}
            calls.append(
                ToolCall(
                    id=str(raw.get("id") or ""),
                    name=str(function.get("name") or ""),
                    arguments=parsed if isinstance(parsed, dict) else {},
                )
            )
        return calls


_default_client = LLMClient()


def default_client() -> LLMClient:
    """Return the process wide client used when none is injected."""

    return _default_client


async def llm_json(
    prompt: str,
    system: str,
    model: str,
    stop: Optional[Sequence[str]],
    prompt_version: str,
    *,
    client: Optional[LLMClient] = None,
) -> Dict[str, Any]:
    """Call the LLM client expecting a JSON response."""

    active = client or _default_client
    try:
        response = await active.chat(
            prompt=prompt,
            system=system,
            model=model,
            stop=stop,
            prompt_version=prompt_version,
        )
        content = active.extract_content(response)
        return json.loads(content)
    except json.JSONDecodeError:
        retry_response = await active.chat(
            prompt=prompt,
            system=system,
            model=model,
            stop=stop,
            prompt_version=prompt_version,
            force_json=True,
        )
        retry_content = active.extract_content(retry_response)
        return json.loads(retry_content)


__all__ = ["LLMClient", "OracleUnavailable", "ToolCall", "default_client", "llm_json"]
