"""Window store interface.

Backends implement four raw primitives (read, write, list_entries, delete)
that raise StorageAppError on failure. The public ``load``/``save`` pair wraps
them in result objects so callers can fail open without try/except.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from app.core.errors import StorageAppError
from app.core.logging import short_hash

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredEntry:
    """Storage-level metadata for one window record.

    Attributes:
        fingerprint: Key of the record.
        modified_at: UNIX epoch seconds of the last write.
    """

    fingerprint: str
    modified_at: float


@dataclass(frozen=True)
class LoadResult:
    """Outcome of ``AbstractWindowStore.load``.

    ``timestamps`` is empty whenever ``error`` is set.
    """

    timestamps: tuple[int, ...]
    error: StorageAppError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class SaveResult:
    """Outcome of ``AbstractWindowStore.save``."""

    saved: bool
    error: StorageAppError | None = None


def encode_timestamps(timestamps: Sequence[int]) -> str:
    """Serialize a window as a compact JSON array."""

    return json.dumps([int(t) for t in timestamps], separators=(",", ":"))


def decode_timestamps(raw: str | bytes, *, fingerprint: str) -> list[int]:
    """Parse a stored window.

    Raises:
        StorageAppError: If the payload is not a JSON array of integers.
    """

    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as exc:
        raise StorageAppError(
            code="window_store_corrupt",
            message="Stored window is not valid JSON",
            details={"fingerprint": short_hash(fingerprint)},
        ) from exc

    if not isinstance(data, list) or not all(
        isinstance(t, int) and not isinstance(t, bool) for t in data
    ):
        raise StorageAppError(
            code="window_store_corrupt",
            message="Stored window is not a list of integer timestamps",
            details={"fingerprint": short_hash(fingerprint)},
        )
    return data


class AbstractWindowStore(ABC):
    """Key/value store of attempt windows, one record per fingerprint.

    Implementations must make ``write`` and ``delete`` atomic per key: a
    concurrent reader sees either the previous complete value or the new one.
    No cross-key transactions are assumed.
    """

    @abstractmethod
    def read(self, fingerprint: str) -> list[int]:
        """Return the stored timestamps, or an empty list when absent.

        Raises:
            StorageAppError: If the record cannot be read or decoded.
        """
        raise NotImplementedError

    @abstractmethod
    def write(self, fingerprint: str, timestamps: Sequence[int]) -> None:
        """Replace the stored timestamps for ``fingerprint``.

        Raises:
            StorageAppError: If the record cannot be written.
        """
        raise NotImplementedError

    @abstractmethod
    def list_entries(self) -> list[StoredEntry]:
        """Enumerate every stored record with its last-modified time.

        Raises:
            StorageAppError: If the namespace cannot be listed.
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, fingerprint: str) -> bool:
        """Remove a record.

        Returns:
            True if a record was removed, False if none existed.

        Raises:
            StorageAppError: If the record exists but cannot be removed.
        """
        raise NotImplementedError

    def load(self, fingerprint: str) -> LoadResult:
        """Read a window, treating any failure as "no history"."""

        try:
            return LoadResult(timestamps=tuple(self.read(fingerprint)))
        except StorageAppError as exc:
            logger.warning(
                "window_store.load_failed",
                extra={
                    "fingerprint_hash": short_hash(fingerprint),
                    "error_code": exc.code,
                    "error_message": exc.message,
                },
            )
            return LoadResult(timestamps=(), error=exc)

    def save(self, fingerprint: str, timestamps: Sequence[int]) -> SaveResult:
        """Persist a window, reporting failure instead of raising."""

        try:
            self.write(fingerprint, timestamps)
        except StorageAppError as exc:
            logger.error(
                "window_store.save_failed",
                extra={
                    "fingerprint_hash": short_hash(fingerprint),
                    "error_code": exc.code,
                    "error_message": exc.message,
                },
            )
            return SaveResult(saved=False, error=exc)
        return SaveResult(saved=True)
