"""Ollama LLM provider adapter.

Wraps a local Ollama server via its OpenAI-compatible ``/v1`` endpoint,
reusing the ``openai`` client.  The availability check talks to Ollama's
native ``/api/tags`` endpoint with httpx to confirm the server is up and
the model is pulled.

Setup: install Ollama, ``ollama pull llama3.2``, and set
``OLLAMA_BASE_URL=http://localhost:11434``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import openai
import structlog

from indexrag.config.settings import Settings
from indexrag.interfaces.llm_provider import ILLMProvider, LLMAvailability
from indexrag.providers.llm.openai_provider import is_context_length_error
from indexrag.utils.errors import ContextWindowExceededError, LLMError

logger = structlog.get_logger(logger_name=__name__)

_AVAILABILITY_TIMEOUT = 5.0


class OllamaLLMProvider(ILLMProvider):
    """LLM provider backed by a local Ollama server."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            # Ollama ignores the key but the SDK requires one.
            api_key="ollama",
        )
        self._http_client = http_client
        self._text_model = settings.ollama_model

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
                message=f"Ollama context window exceeded: {exc}",
                provider_name=self.get_provider_name(),
            )
        return LLMError(
            message=f"Ollama API error: {exc}",
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
                message="Ollama returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info("ollama_completion", model=self._text_model)
        return content

    async def stream_complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> AsyncIterator[str]:
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

    async def check_availability(self) -> LLMAvailability:
        """Ask the Ollama server which models are installed."""
        if not self._base_url:
            return LLMAvailability.unavailable("OLLAMA_BASE_URL is not configured")
        url = f"{self._base_url}/api/tags"
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, timeout=_AVAILABILITY_TIMEOUT)
            else:
                async with httpx.AsyncClient(timeout=_AVAILABILITY_TIMEOUT) as client:
                    response = await client.get(url)
        except httpx.HTTPError as exc:
            logger.warning("ollama_unreachable", url=url, error=str(exc))
            return LLMAvailability.unavailable(f"Ollama server unreachable at {self._base_url}")

        if response.status_code != 200:
            return LLMAvailability.unavailable(f"Ollama returned HTTP {response.status_code}")

        names = {m.get("name", "") for m in response.json().get("models", [])}
        # Ollama reports "llama3.2:latest" for a model pulled as "llama3.2".
        if self._text_model not in names and f"{self._text_model}:latest" not in names:
            return LLMAvailability.unavailable(
                f"Model '{self._text_model}' is not pulled (run: ollama pull {self._text_model})"
            )
        return LLMAvailability.ok()

    def get_provider_name(self) -> str:
        return "ollama"

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama base URL is configured."""
        return bool(self._base_url)
