"""LLM provider adapters.

Three concrete implementations of ILLMProvider (indexrag/interfaces/llm_provider.py):
    - OpenAILLMProvider    -- gpt-4o-mini (also any OpenAI-compatible API)
    - AnthropicLLMProvider -- Claude Sonnet
    - OllamaLLMProvider    -- local models via an Ollama server

main.py builds the provider named by LLM_PROVIDER, or the first one with a
configured key, and hands it to the retrieval and transformation services.
"""

from indexrag.providers.llm.anthropic_provider import AnthropicLLMProvider
from indexrag.providers.llm.ollama_provider import OllamaLLMProvider
from indexrag.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider", "AnthropicLLMProvider", "OllamaLLMProvider"]
