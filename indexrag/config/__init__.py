"""Configuration module: exports Settings, load_config, and a module-level singleton."""

from indexrag.config.loader import load_config
from indexrag.config.settings import Settings

settings = Settings()

__all__ = ["Settings", "load_config", "settings"]
