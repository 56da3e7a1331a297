"""File-backed window store.

One JSON file per fingerprint (``ratelimit_<fingerprint>.json``) in a shared
directory, so independent worker processes see the same history. Writes go
to a temporary file in the same directory and are moved into place with
``os.replace``; readers never observe a partially written record.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Sequence

from app.adapters.window_store.base import (
    AbstractWindowStore,
    StoredEntry,
    decode_timestamps,
    encode_timestamps,
)
from app.core.errors import StorageAppError
from app.core.logging import short_hash

logger = logging.getLogger(__name__)

_FINGERPRINT_RE = re.compile(r"[A-Za-z0-9_-]+")


class FileWindowStore(AbstractWindowStore):
    """Window store persisting each record as a file in ``directory``."""

    def __init__(
        self,
        directory: str | Path,
        *,
        prefix: str = "ratelimit_",
        suffix: str = ".json",
    ) -> None:
        self._directory = Path(directory)
        self._prefix = prefix
        self._suffix = suffix

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, fingerprint: str) -> Path:
        """Return the file path of a record.

        Raises:
            StorageAppError: If the fingerprint contains path-unsafe characters.
        """

        if not _FINGERPRINT_RE.fullmatch(fingerprint):
            raise StorageAppError(
                code="window_store_invalid_key",
                message="Fingerprint contains characters not allowed in a record name",
                details={"fingerprint": short_hash(fingerprint)},
            )
        return self._directory / f"{self._prefix}{fingerprint}{self._suffix}"

    def _fingerprint_from_name(self, name: str) -> str:
        return name[len(self._prefix) : len(name) - len(self._suffix)]

    def read(self, fingerprint: str) -> list[int]:
        path = self.path_for(fingerprint)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StorageAppError(
                code="window_store_read_failed",
                message=f"Could not read window record: {exc.strerror or exc}",
                details={"fingerprint": short_hash(fingerprint), "operation": "read"},
            ) from exc
        return decode_timestamps(raw, fingerprint=fingerprint)

    def write(self, fingerprint: str, timestamps: Sequence[int]) -> None:
        path = self.path_for(fingerprint)
        payload = encode_timestamps(timestamps)
        tmp_name: str | None = None
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            # Leading dot keeps temp files out of list_entries()
            fd, tmp_name = tempfile.mkstemp(
                dir=self._directory, prefix=f".{self._prefix}", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            raise StorageAppError(
                code="window_store_write_failed",
                message=f"Could not write window record: {exc.strerror or exc}",
                details={"fingerprint": short_hash(fingerprint), "operation": "write"},
            ) from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.debug("window_store.tmp_cleanup_failed", extra={"path": tmp_name})

    def list_entries(self) -> list[StoredEntry]:
        if not self._directory.is_dir():
            return []

        entries: list[StoredEntry] = []
        try:
            candidates = list(self._directory.glob(f"{self._prefix}*{self._suffix}"))
        except OSError as exc:
            raise StorageAppError(
                code="window_store_list_failed",
                message=f"Could not list window records: {exc.strerror or exc}",
                details={"path": str(self._directory), "operation": "list"},
            ) from exc

        for path in candidates:
            try:
                modified_at = path.stat().st_mtime
            except FileNotFoundError:
                # Removed by a concurrent sweep between glob and stat
                continue
            except OSError as exc:
                raise StorageAppError(
                    code="window_store_list_failed",
                    message=f"Could not stat window record: {exc.strerror or exc}",
                    details={"path": str(path), "operation": "stat"},
                ) from exc
            entries.append(
                StoredEntry(
                    fingerprint=self._fingerprint_from_name(path.name),
                    modified_at=modified_at,
                )
            )
        return entries

    def delete(self, fingerprint: str) -> bool:
        path = self.path_for(fingerprint)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageAppError(
                code="window_store_delete_failed",
                message=f"Could not delete window record: {exc.strerror or exc}",
                details={"fingerprint": short_hash(fingerprint), "operation": "delete"},
            ) from exc
        return True
