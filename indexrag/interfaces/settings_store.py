"""Abstract base class for the small key-value settings store.

Holds persisted flags owned by the core, such as whether the vector-store
migration has already run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class ISettingsStore(ABC):
    """Contract for persisted boolean/string flags."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create backing storage if needed."""

    @abstractmethod
    async def get_bool(self, key: str, default: bool = False) -> bool:
        """Return the flag stored under *key*, or *default* when unset."""

    @abstractmethod
    async def set_bool(self, key: str, value: bool) -> None:
        """Persist *value* under *key*."""

    @abstractmethod
    async def get_str(self, key: str, default: str | None = None) -> str | None:
        """Return the string stored under *key*, or *default* when unset."""

    @abstractmethod
    async def set_str(self, key: str, value: str) -> None:
        """Persist *value* under *key*."""
