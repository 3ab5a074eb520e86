"""Anthropic LLM provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`
via the Claude Messages API.

Key differences from the OpenAI adapter:
    - The system prompt is a separate parameter, not a message
    - Response content is a list of blocks, so text blocks are joined
    - Streaming goes through ``messages.stream`` and its ``text_stream``
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import anthropic
import structlog

from indexrag.config.settings import Settings
from indexrag.interfaces.llm_provider import ILLMProvider, LLMAvailability
from indexrag.utils.errors import ContextWindowExceededError, LLMError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicLLMProvider(ILLMProvider):
    """LLM provider backed by the Anthropic Claude API."""

    def __init__(self, settings: Settings, model: str = _DEFAULT_MODEL) -> None:
        self._settings = settings
        self._api_key = settings.anthropic_api_key
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        self._model = model

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    def _request(
        self, system_prompt: str, user_prompt: str, temperature: float, max_tokens: int
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": user_prompt}],
            "temperature": temperature,
        }
        # The API rejects an empty system string.
        if system_prompt:
            kwargs["system"] = system_prompt
        return kwargs

    def _wrap_error(self, exc: anthropic.APIError) -> Exception:
        if isinstance(exc, anthropic.BadRequestError) and "too long" in str(exc).lower():
            return ContextWindowExceededError(
                message=f"Anthropic context window exceeded: {exc}",
                provider_name=self.get_provider_name(),
            )
        return LLMError(
            message=f"Anthropic API error: {exc}",
            provider_name=self.get_provider_name(),
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> str:
        try:
            response = await self._client.messages.create(
                **self._request(system_prompt, user_prompt, temperature, max_tokens)
            )
        except anthropic.APIError as exc:
            raise self._wrap_error(exc) from exc

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise LLMError(
                message="Anthropic returned no text content",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "anthropic_completion",
            model=self._model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return "\n".join(text_blocks)

    async def stream_complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> AsyncIterator[str]:
        try:
            async with self._client.messages.stream(
                **self._request(system_prompt, user_prompt, temperature, max_tokens)
            ) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield text
        except anthropic.APIError as exc:
            raise self._wrap_error(exc) from exc
        logger.info("anthropic_stream_complete", model=self._model)

    async def check_availability(self) -> LLMAvailability:
        if not self._api_key:
            return LLMAvailability.unavailable("ANTHROPIC_API_KEY is not configured")
        return LLMAvailability.ok()

    def get_provider_name(self) -> str:
        return "anthropic"

    def is_available(self) -> bool:
        """Return ``True`` if an Anthropic API key is configured."""
        return bool(self._api_key)
