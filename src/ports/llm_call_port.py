"""LLMCallPort - the one model call an ask or ctx job makes.

The job worker resolves the organization's OPENAI key (and optional
BASE_URL) before calling, so adapters never read credentials themselves.
LiteLLMChatAdapter is the production implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ChatMessage:
    role: str  # system | user | assistant
    content: str


@dataclass(frozen=True)
class LLMResponse:
    text: str
    # input/output token counts as reported by the provider
    tokens_used: dict[str, int] = field(default_factory=dict)
    model_id: str = ""
    finish_reason: str = "stop"


class LLMCallPort(ABC):
    @abstractmethod
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
        """Complete ``messages`` (system prompt first, if any) with ``model``.

        Failures propagate; the worker records them as an ``error`` job status.
        """
