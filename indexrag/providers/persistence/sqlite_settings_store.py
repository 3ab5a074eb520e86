"""SQLite-backed key-value settings store.

Shares the database file with the document repository; flags live in a
single ``settings`` table keyed by name.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite
import structlog

from indexrag.interfaces.settings_store import ISettingsStore

logger = structlog.get_logger(logger_name=__name__)

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS settings (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_UPSERT_SQL = """\
INSERT INTO settings (key, value)
VALUES (?, ?)
ON CONFLICT(key)
DO UPDATE SET value      = excluded.value,
              updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""


class SQLiteSettingsStore(ISettingsStore):
    """Persisted flags backed by SQLite."""

    def __init__(self, db_path: str | Path = Path("data/index.db")) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            await db.commit()
        logger.info("settings_db_initialized", path=str(self._db_path))

    async def _get(self, key: str) -> str | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("SELECT value FROM settings WHERE key = ?", (key,))
            row = await cursor.fetchone()
        return row[0] if row is not None else None

    async def _set(self, key: str, value: str) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_UPSERT_SQL, (key, value))
            await db.commit()
        logger.debug("setting_saved", key=key)

    async def get_bool(self, key: str, default: bool = False) -> bool:
        value = await self._get(key)
        if value is None:
            return default
        return value == "1"

    async def set_bool(self, key: str, value: bool) -> None:
        await self._set(key, "1" if value else "0")

    async def get_str(self, key: str, default: str | None = None) -> str | None:
        value = await self._get(key)
        return default if value is None else value

    async def set_str(self, key: str, value: str) -> None:
        await self._set(key, value)
