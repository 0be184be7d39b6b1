"""Fake LLMCallPort recording every call."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from src.ports.llm_call_port import ChatMessage, LLMCallPort, LLMResponse


@dataclass
class RecordedChat:
    messages: list[ChatMessage]
    model: str
    api_key: str | None
    base_url: str | None
    temperature: float
    max_tokens: int | None


@dataclass
class FakeLLM(LLMCallPort):
    """Returns ``reply`` (or raises ``error``) after an optional gate.

    ``gate`` lets a test hold the call open to observe the pending state.
    """

    reply: str = "fake reply"
    error: Exception | None = None
    gate: asyncio.Event | None = None
    calls: list[RecordedChat] = field(default_factory=list)

    async def chat(
        self,
        messages: list[ChatMessage],
        *,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        self.calls.append(
            RecordedChat(
                messages=list(messages),
                model=model,
                api_key=api_key,
                base_url=base_url,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        )
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return LLMResponse(text=self.reply, model_id=model, tokens_used=_usage(messages))


def _usage(messages: list[Any]) -> dict[str, int]:
    return {"input": sum(len(m.content) for m in messages), "output": 2}
