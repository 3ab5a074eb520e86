"""Application settings loaded from environment variables via pydantic-settings.

Configuration is read from two sources (in priority order):

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-abc123``
  2. ``.env`` file in the project root (local development)

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Defaults are
used when neither source provides a value.  Policy constants (chunk sizes,
retrieval thresholds, cache capacity) live in ``config/config.yaml`` and are
merged by :func:`indexrag.config.loader.load_config`.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """indexrag application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM Providers ===
    # Empty string = "not configured" -> provider selection in main.py skips
    # providers with empty keys and falls through to the next one.
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_text_model: str = ""
    openai_embedding_model: str = ""
    anthropic_api_key: str = ""
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"
    llm_provider: str = ""  # "openai" | "anthropic" | "ollama"; empty = first configured

    # === Embeddings ===
    # "auto" picks a catalogue model from installed RAM.
    embedding_model: str = "auto"
    embedding_provider: str = "fastembed"  # "fastembed" | "sentence_transformers" | "openai"

    # === Vector store ===
    vector_backend: str = "chromadb"  # "chromadb" | "flat"
    data_dir: str = "./data"
    chromadb_persist_dir: str = "./data/chromadb/index-vector-db"
    chromadb_collection: str = "document-chunks"
    flat_store_dir: str = "./data/flat/index-vector-db"

    # === Document persistence ===
    database_path: str = "data/index.db"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return LLM provider names that have credentials or a URL configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
