"""LLMCallPort real implementation via LiteLLM.

Supports OpenAI and any OpenAI-compatible endpoint through LiteLLM's
unified interface. Keys and base URLs are passed per call because they
belong to the calling organization.
"""

from __future__ import annotations

import logging
from typing import Any

import litellm

from src.ports.llm_call_port import ChatMessage, LLMCallPort, LLMResponse

logger = logging.getLogger(__name__)


class LiteLLMChatAdapter(LLMCallPort):
    """LiteLLM-backed implementation of LLMCallPort."""

    def __init__(
        self,
        *,
        timeout_s: float = 60,
        max_retries: int = 2,
    ) -> None:
        self._timeout_s = timeout_s
        self._max_retries = max_retries

        litellm.drop_params = True

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
        optional_params: dict[str, Any] = {}
        if api_key:
            optional_params["api_key"] = api_key
        if base_url:
            optional_params["api_base"] = base_url

        try:
            response = await litellm.acompletion(
                model=model,
                messages=[{"role": m.role, "content": m.content} for m in messages],
                timeout=self._timeout_s,
                num_retries=self._max_retries,
                temperature=temperature,
                max_tokens=max_tokens,
                **optional_params,
            )
        except Exception:
            logger.exception("LLM call failed for model=%s", model)
            raise

        text = response.choices[0].message.content or ""
        usage = response.usage
        tokens_used = {
            "input": usage.prompt_tokens if usage else 0,
            "output": usage.completion_tokens if usage else 0,
        }
        return LLMResponse(
            text=text,
            tokens_used=tokens_used,
            model_id=response.model or model,
            finish_reason=response.choices[0].finish_reason or "stop",
        )
