"""SQLite persistence adapters for documents and settings flags."""

from indexrag.providers.persistence.sqlite_document_repository import SQLiteDocumentRepository
from indexrag.providers.persistence.sqlite_settings_store import SQLiteSettingsStore

__all__ = ["SQLiteDocumentRepository", "SQLiteSettingsStore"]
