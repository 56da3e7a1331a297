"""Unit tests for window store adapters."""

import os
from pathlib import Path

import pytest

from app.adapters.window_store import FileWindowStore, InMemoryWindowStore
from app.core.errors import StorageAppError

FP = "a" * 64
OTHER_FP = "b" * 64


class TestFileWindowStore:
    def test_missing_record_reads_empty(self, tmp_path: Path) -> None:
        store = FileWindowStore(tmp_path)

        assert store.read(FP) == []
        assert store.load(FP).timestamps == ()
        assert store.load(FP).ok is True

    def test_write_creates_named_json_file(self, tmp_path: Path) -> None:
        store = FileWindowStore(tmp_path / "nested")

        store.write(FP, [100, 200])

        path = tmp_path / "nested" / f"ratelimit_{FP}.json"
        assert path.read_text(encoding="utf-8") == "[100,200]"
        assert store.read(FP) == [100, 200]

    def test_write_overwrites_previous_value(self, tmp_path: Path) -> None:
        store = FileWindowStore(tmp_path)
        store.write(FP, [1, 2, 3])

        store.write(FP, [4])

        assert store.read(FP) == [4]

    def test_write_leaves_no_temp_files(self, tmp_path: Path) -> None:
        store = FileWindowStore(tmp_path)
        store.write(FP, [1])
        store.write(FP, [1, 2])

        assert sorted(p.name for p in tmp_path.iterdir()) == [f"ratelimit_{FP}.json"]

    @pytest.mark.parametrize(
        "payload",
        [
            b"not json",
            b'{"a": 1}',
            b'[1, "2"]',
            b"[true]",
            b"[1,\xff]",
            b"[" * 100_000 + b"]" * 100_000,
        ],
    )
    def test_corrupt_record_raises_on_read(self, tmp_path: Path, payload: bytes) -> None:
        store = FileWindowStore(tmp_path)
        (tmp_path / f"ratelimit_{FP}.json").write_bytes(payload)

        with pytest.raises(StorageAppError) as exc_info:
            store.read(FP)

        assert exc_info.value.code == "window_store_corrupt"

    def test_corrupt_record_loads_as_empty_history(self, tmp_path: Path) -> None:
        store = FileWindowStore(tmp_path)
        (tmp_path / f"ratelimit_{FP}.json").write_text("garbage", encoding="utf-8")

        result = store.load(FP)

        assert result.timestamps == ()
        assert result.ok is False
        assert result.error is not None
        assert result.error.code == "window_store_corrupt"

    @pytest.mark.parametrize("fingerprint", ["../escape", "a/b", "", "with space"])
    def test_rejects_path_unsafe_fingerprints(self, tmp_path: Path, fingerprint: str) -> None:
        store = FileWindowStore(tmp_path)

        with pytest.raises(StorageAppError) as exc_info:
            store.write(fingerprint, [1])

        assert exc_info.value.code == "window_store_invalid_key"
        assert store.save(fingerprint, [1]).saved is False

    def test_save_reports_failure_when_directory_is_a_file(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = FileWindowStore(blocker)

        result = store.save(FP, [1])

        assert result.saved is False
        assert result.error is not None
        assert result.error.code == "window_store_write_failed"

    def test_list_entries_reports_fingerprint_and_mtime(self, tmp_path: Path) -> None:
        store = FileWindowStore(tmp_path)
        store.write(FP, [1])
        store.write(OTHER_FP, [2])
        os.utime(store.path_for(FP), (1000, 1000))
        (tmp_path / "unrelated.txt").write_text("x", encoding="utf-8")

        entries = {e.fingerprint: e.modified_at for e in store.list_entries()}

        assert set(entries) == {FP, OTHER_FP}
        assert entries[FP] == 1000

    def test_list_entries_on_missing_directory_is_empty(self, tmp_path: Path) -> None:
        assert FileWindowStore(tmp_path / "absent").list_entries() == []

    def test_delete(self, tmp_path: Path) -> None:
        store = FileWindowStore(tmp_path)
        store.write(FP, [1])

        assert store.delete(FP) is True
        assert store.delete(FP) is False
        assert store.read(FP) == []

    def test_separate_instances_share_records(self, tmp_path: Path) -> None:
        FileWindowStore(tmp_path).write(FP, [42])

        assert FileWindowStore(tmp_path).read(FP) == [42]


class TestInMemoryWindowStore:
    def test_write_read_and_modified_time_from_clock(self, clock) -> None:
        store = InMemoryWindowStore(clock=clock)

        store.write(FP, [5, 6])
        clock.advance(10)
        store.write(OTHER_FP, [7])

        assert store.read(FP) == [5, 6]
        entries = {e.fingerprint: e.modified_at for e in store.list_entries()}
        assert entries[OTHER_FP] - entries[FP] == 10
        assert len(store) == 2

    def test_read_returns_a_copy(self) -> None:
        store = InMemoryWindowStore()
        store.write(FP, [1])

        store.read(FP).append(2)

        assert store.read(FP) == [1]

    def test_delete(self) -> None:
        store = InMemoryWindowStore()
        store.write(FP, [1])

        assert store.delete(FP) is True
        assert store.delete(FP) is False
        assert len(store) == 0
