"""In-memory window store.

Notes:
- Per-process only: running multiple workers gives each worker its own
  history, multiplying the effective limit.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Sequence

from app.adapters.window_store.base import AbstractWindowStore, StoredEntry


@dataclass
class _Record:
    timestamps: tuple[int, ...]
    modified_at: float


class InMemoryWindowStore(AbstractWindowStore):
    """Window store kept in a process-local dict.

    Suitable for tests and single-process deployments. ``modified_at`` is
    taken from the injected clock so retention behaviour can be tested
    deterministically.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        self._records: dict[str, _Record] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def read(self, fingerprint: str) -> list[int]:
        with self._lock:
            record = self._records.get(fingerprint)
            return list(record.timestamps) if record else []

    def write(self, fingerprint: str, timestamps: Sequence[int]) -> None:
        with self._lock:
            self._records[fingerprint] = _Record(
                timestamps=tuple(int(t) for t in timestamps),
                modified_at=self._clock(),
            )

    def list_entries(self) -> list[StoredEntry]:
        with self._lock:
            return [
                StoredEntry(fingerprint=fp, modified_at=record.modified_at)
                for fp, record in self._records.items()
            ]

    def delete(self, fingerprint: str) -> bool:
        with self._lock:
            return self._records.pop(fingerprint, None) is not None
