"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml  -- policy defaults checked into the repo
  2. .env file           -- local developer overrides (not committed)
  3. Environment vars    -- set at deploy time

``load_config()`` reads the YAML file first, then deep-merges the
environment-derived values from :class:`Settings` on top.
"""

from pathlib import Path
from typing import Any

import yaml

from indexrag.config.settings import Settings

# Built-in policy defaults, used for any key missing from config.yaml.
DEFAULT_POLICY: dict[str, Any] = {
    "chunking": {"chunk_size": 512, "overlap_size": 50},
    "retrieval": {
        "num_results": 10,
        "threshold": 0.7,
        "direct_context_max_results": 5,
        "max_chars_per_result": 800,
        "max_context_chars": 2400,
        "summary_batch_size": 3,
    },
    "cache": {"capacity": 100, "eviction_batch": 10},
    "pipeline": {
        "readiness_attempts": 30,
        "readiness_interval_seconds": 1.0,
        "sweep_concurrency": 3,
    },
    "migration": {"grace_delay_seconds": 5.0},
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` is read when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config: dict[str, Any] = {}
    _deep_merge(config, _copy(DEFAULT_POLICY))

    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
        _deep_merge(config, yaml_config)

    s = settings or Settings()
    env_overrides = {
        "app": {
            "host": s.app_host,
            "port": s.app_port,
            "env": s.app_env,
        },
        "llm": {
            "preferred": s.llm_provider,
            "available_providers": s.get_available_llm_providers(),
        },
        "embedding": {
            "model": s.embedding_model,
            "provider": s.embedding_provider,
        },
        "vector_store": {
            "backend": s.vector_backend,
            "chromadb_persist_dir": s.chromadb_persist_dir,
            "flat_store_dir": s.flat_store_dir,
        },
        "logging": {
            "level": s.log_level,
        },
    }

    _deep_merge(config, env_overrides)
    return config


def _copy(data: dict) -> dict:
    return {k: _copy(v) if isinstance(v, dict) else v for k, v in data.items()}


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
