"""OpenAI-compatible LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
When a custom ``openai_base_url`` is configured (TogetherAI, Fireworks,
Groq, a local server) the client points at that URL instead of the default
OpenAI endpoint, so one adapter covers many hosted models.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import openai
import structlog

from indexrag.config.settings import Settings
from indexrag.interfaces.llm_provider import ILLMProvider, LLMAvailability
from indexrag.utils.errors import ContextWindowExceededError, LLMError

logger = structlog.get_logger(logger_name=__name__)


def is_context_length_error(exc: openai.APIError) -> bool:
    """Return ``True`` if *exc* reports a prompt longer than the context window."""
    code = getattr(exc, "code", None)
    if code == "context_length_exceeded":
        return True
    text = str(exc).lower()
    return "context length" in text or "context window" in text or "maximum context" in text


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by an OpenAI-compatible chat completions API.

    Uses ``gpt-4o-mini`` by default; override with ``OPENAI_TEXT_MODEL``.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(60.0, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._text_model = settings.openai_text_model or "gpt-4o-mini"
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    def _messages(self, system_prompt: str, user_prompt: str) -> list[dict[str, str]]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        return messages

    def _wrap_error(self, exc: openai.APIError) -> Exception:
        if is_context_length_error(exc):
            return ContextWindowExceededError(
                message=f"{self._provider_label} context window exceeded: {exc}",
                provider_name=self.get_provider_name(),
            )
        return LLMError(
            message=f"{self._provider_label} API error: {exc}",
            provider_name=self.get_provider_name(),
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> str:
        """Generate a text completion via the chat completions API."""
        try:
            response = await self._client.chat.completions.create(
                model=self._text_model,
                messages=self._messages(system_prompt, user_prompt),
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APIError as exc:
            raise self._wrap_error(exc) from exc

        content = response.choices[0].message.content
        if content is None:
            raise LLMError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "openai_completion",
            model=self._text_model,
            provider=self._provider_label,
            prompt_tokens=response.usage.prompt_tokens if response.usage else None,
            completion_tokens=response.usage.completion_tokens if response.usage else None,
        )
        return content

    async def stream_complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> AsyncIterator[str]:
        """Stream a completion, yielding content deltas as they arrive."""
        try:
            stream = await self._client.chat.completions.create(
                model=self._text_model,
                messages=self._messages(system_prompt, user_prompt),
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except openai.APIError as exc:
            raise self._wrap_error(exc) from exc
        logger.info("openai_stream_complete", model=self._text_model, provider=self._provider_label)

    async def check_availability(self) -> LLMAvailability:
        if not self._api_key:
            return LLMAvailability.unavailable("OPENAI_API_KEY is not configured")
        return LLMAvailability.ok()

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
