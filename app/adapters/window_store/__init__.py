"""Window store adapters.

Persist per-fingerprint attempt timestamps behind a small key/value
interface so the limiter can run on local files today and on a networked
store later without changing the decision logic.
"""

from app.adapters.window_store.base import (
    AbstractWindowStore,
    LoadResult,
    SaveResult,
    StoredEntry,
)
from app.adapters.window_store.file_store import FileWindowStore
from app.adapters.window_store.in_memory import InMemoryWindowStore

__all__ = [
    "AbstractWindowStore",
    "FileWindowStore",
    "InMemoryWindowStore",
    "LoadResult",
    "SaveResult",
    "StoredEntry",
]
