"""Abstract base class for LLM service providers.

Defines the contract for the generation service used for answering,
summarizing, and transforming documents.  Implementations wrap OpenAI,
Anthropic (Claude), or a local Ollama server; every call-site stays
provider-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass


@dataclass(frozen=True)
class LLMAvailability:
    """Result of an availability check: ``available`` or ``unavailable(reason)``."""

    available: bool
    reason: str = ""

    @classmethod
    def ok(cls) -> LLMAvailability:
        return cls(available=True)

    @classmethod
    def unavailable(cls, reason: str) -> LLMAvailability:
        return cls(available=False, reason=reason)


# Concrete implementations: OpenAILLMProvider, AnthropicLLMProvider, OllamaLLMProvider
# Located in: indexrag/providers/llm/
class ILLMProvider(ABC):
    """Contract for the text generation service."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
            May be empty.
        user_prompt:
            The prompt containing the actual request or data.
        temperature:
            Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        str
            The model's full text response.

        Raises
        ------
        indexrag.utils.errors.ContextWindowExceededError
            If the prompt does not fit the model's context window.
        indexrag.utils.errors.LLMError
            If the API call fails or returns an invalid response.
        """

    @abstractmethod
    def stream_complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> AsyncIterator[str]:
        """Stream a completion as text deltas.

        Implemented as an async generator; iterate with ``async for``.
        Raises the same errors as :meth:`complete`.
        """

    @abstractmethod
    async def check_availability(self) -> LLMAvailability:
        """Check whether the model can serve requests right now."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Checks configuration only; :meth:`check_availability` contacts the
        service.
        """
