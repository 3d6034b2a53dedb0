"""Travel assistant that answers questions about a single destination."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from tourease.agents import AgentExecutionError, DEFAULT_AGENT_MODEL, call_llm_and_validate
from tourease.core.llm import LLMClient, OracleUnavailable
from tourease.schemas import AssistantAnswer, AssistantReply

_LOGGER = logging.getLogger(__name__)

COULD_NOT_ANSWER = "Sorry, I couldn't answer that right now. Please try asking again."


class TravelAssistant:
    """Stateless question answering; every call is a fresh model invocation."""

    system_prompt = (
        "You are a helpful AI travel assistant. Answer the user's question about the given "
        "travel destination. Respond with JSON containing only an 'answer' string."
    )
    prompt_version = "assistant.v1"

    def __init__(self, *, client: Optional[LLMClient] = None, model: Optional[str] = None) -> None:
        self.client = client
        self.model = model or DEFAULT_AGENT_MODEL

    async def ask(self, destination: str, question: str) -> AssistantReply:
        destination = destination.strip()
        question = question.strip()
        if not question:
            return AssistantReply(destination=destination, question=question, error="Please enter a question.")

        prompt = f"Destination: {destination or 'unspecified'}\nQuestion: {question}\n\nAnswer:"
        start = time.perf_counter()
        try:
            result = await call_llm_and_validate(
                schema=AssistantAnswer,
                prompt=prompt,
                system_prompt=self.system_prompt,
                prompt_version=self.prompt_version,
                model=self.model,
                client=self.client,
            )
        except (OracleUnavailable, AgentExecutionError) as exc:
            _LOGGER.warning("Assistant could not answer about %s: %s", destination or "unspecified", exc)
            return AssistantReply(destination=destination, question=question, error=COULD_NOT_ANSWER)

        _LOGGER.info(
            "Assistant answered in %.2fs [prompt_version=%s]",
            time.perf_counter() - start,
            self.prompt_version,
        )
        return AssistantReply(destination=destination, question=question, answer=result.answer)


@dataclass
class AssistantSession:
    """Chat widget state: the destination in focus and the turns asked so far."""

    assistant: TravelAssistant
    destination: Optional[str] = None
    turns: List[AssistantReply] = field(default_factory=list)

    def focus(self, destination: str) -> None:
        """Switch the conversation to a new destination."""

        if destination != self.destination:
            self.destination = destination
            self.turns.clear()

    async def ask(self, question: str) -> AssistantReply:
        reply = await self.assistant.ask(self.destination or "", question)
        self.turns.append(reply)
        return reply


__all__ = ["AssistantSession", "COULD_NOT_ANSWER", "TravelAssistant"]
