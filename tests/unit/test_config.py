"""Unit tests for Settings and the layered YAML config loader."""

from __future__ import annotations

from pathlib import Path

from indexrag.config.loader import DEFAULT_POLICY, load_config
from indexrag.config.settings import Settings


def _settings(**overrides) -> Settings:
    defaults = {"openai_api_key": "", "anthropic_api_key": "", "llm_provider": ""}
    defaults.update(overrides)
    return Settings(**defaults)


class TestSettings:
    def test_available_providers(self) -> None:
        settings = _settings(openai_api_key="sk", ollama_base_url="")
        assert settings.get_available_llm_providers() == ["openai"]

    def test_ollama_counts_when_url_set(self) -> None:
        assert "ollama" in _settings().get_available_llm_providers()


class TestLoadConfig:
    def test_defaults_without_yaml(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "missing.yaml"), settings=_settings())

        assert config["chunking"] == DEFAULT_POLICY["chunking"]
        assert config["retrieval"]["threshold"] == 0.7
        assert config["cache"]["capacity"] == 100

    def test_yaml_overrides_policy(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("chunking:\n  chunk_size: 256\nretrieval:\n  threshold: 0.5\n")

        config = load_config(str(path), settings=_settings())

        assert config["chunking"]["chunk_size"] == 256
        assert config["chunking"]["overlap_size"] == 50
        assert config["retrieval"]["threshold"] == 0.5
        assert config["retrieval"]["num_results"] == 10

    def test_defaults_not_mutated(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("cache:\n  capacity: 5\n")
        load_config(str(path), settings=_settings())
        assert DEFAULT_POLICY["cache"]["capacity"] == 100

    def test_environment_sections(self, tmp_path: Path) -> None:
        settings = _settings(vector_backend="flat", embedding_model="all-MiniLM-L6-v2", app_port=9000)
        config = load_config(str(tmp_path / "missing.yaml"), settings=settings)

        assert config["vector_store"]["backend"] == "flat"
        assert config["embedding"]["model"] == "all-MiniLM-L6-v2"
        assert config["app"]["port"] == 9000

    def test_repository_config_file(self, project_root: Path) -> None:
        config = load_config(str(project_root / "config" / "config.yaml"), settings=_settings())
        assert config["pipeline"]["sweep_concurrency"] == 3
        assert config["migration"]["grace_delay_seconds"] == 5.0
