"""Storage adapters: SQLite structured store and local-directory file store."""

from docingest.providers.store.local_file_store import LocalFileStore
from docingest.providers.store.sqlite_store import SQLiteStructuredStore

__all__ = ["LocalFileStore", "SQLiteStructuredStore"]
