"""Tests for fingerprint file persistence."""

import logging
import os
import stat

import pytest

from segmented_archive.exceptions import StoreError
from segmented_archive.sync import fingerprint_store as fingerprint_store_module
from segmented_archive.sync.fingerprint_store import (
    FingerprintStore,
    read_fingerprint_file,
    write_fingerprint_file,
)


def test_read_fingerprint_file_missing(tmp_path):
    assert read_fingerprint_file(tmp_path / "nonexistent.txt") == {}


def test_read_write_fingerprint_file(tmp_path):
    store_path = tmp_path / "hashes.txt"
    write_fingerprint_file(store_path, {"a": "1", "b": "2"})
    assert read_fingerprint_file(store_path) == {"a": "1", "b": "2"}


def test_write_fingerprint_file_sorted(tmp_path):
    store_path = tmp_path / "hashes.txt"
    write_fingerprint_file(store_path, {"zebra": "3", "apple": "1", "mango": "2"})
    assert store_path.read_text(encoding='utf-8') == "apple=1\nmango=2\nzebra=3\n"


def test_write_fingerprint_file_creates_parents(tmp_path):
    store_path = tmp_path / "nested" / "dir" / "hashes.txt"
    write_fingerprint_file(store_path, {"seg": "abcdef0123456789"})
    assert read_fingerprint_file(store_path) == {"seg": "abcdef0123456789"}
    assert [p.name for p in store_path.parent.iterdir()] == ["hashes.txt"]


def test_read_fingerprint_file_with_empty_lines(tmp_path):
    store_path = tmp_path / "hashes.txt"
    store_path.write_text("\nkey1=hash1\n\n   \nkey2=hash2\n\n", encoding='utf-8')
    assert read_fingerprint_file(store_path) == {"key1": "hash1", "key2": "hash2"}


def test_read_fingerprint_file_splits_on_first_equals(tmp_path):
    store_path = tmp_path / "hashes.txt"
    store_path.write_text("key=value=with=equals\n=empty_key\nempty_value=\n", encoding='utf-8')
    assert read_fingerprint_file(store_path) == {
        "key": "value=with=equals",
        "": "empty_key",
        "empty_value": "",
    }


def test_read_fingerprint_file_duplicate_keys_last_wins(tmp_path, caplog):
    store_path = tmp_path / "hashes.txt"
    store_path.write_text("a=1\nb=2\na=3\n", encoding='utf-8')

    with caplog.at_level(logging.WARNING):
        assert read_fingerprint_file(store_path) == {"a": "3", "b": "2"}
    assert "Duplicate key 'a'" in caplog.text


def test_read_fingerprint_file_skips_invalid_lines(tmp_path, caplog):
    store_path = tmp_path / "hashes.txt"
    store_path.write_text("a=1\nnot a valid line\nb=2\n", encoding='utf-8')

    with caplog.at_level(logging.WARNING):
        assert read_fingerprint_file(store_path) == {"a": "1", "b": "2"}
    assert "line 2" in caplog.text


def test_read_fingerprint_file_unreadable(tmp_path):
    store_path = tmp_path / "hashes.txt"
    store_path.mkdir()
    with pytest.raises(StoreError):
        read_fingerprint_file(store_path)


def test_write_fingerprint_file_failure(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    with pytest.raises(StoreError):
        write_fingerprint_file(blocker / "hashes.txt", {"a": "1"})


def test_store_without_path_is_noop():
    store = FingerprintStore()
    assert store.load() == {}
    assert store.save({"a": "1"}) is True


def test_store_unreadable_file_loads_empty(tmp_path):
    store_path = tmp_path / "hashes.txt"
    store_path.mkdir()
    assert FingerprintStore(store_path).load() == {}


def test_store_save_failure_reports_false(tmp_path, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    store = FingerprintStore(blocker / "hashes.txt")

    with caplog.at_level(logging.ERROR):
        assert store.save({"a": "1"}) is False
    assert "Failed to write fingerprint file" in caplog.text


def test_store_round_trip(tmp_path):
    store = FingerprintStore(tmp_path / "hashes.txt")
    assert store.save({"home": "0123456789abcdef"})
    assert store.load() == {"home": "0123456789abcdef"}


def test_write_fingerprint_file_syncs_file_and_directory(tmp_path, monkeypatch):
    synced = []
    real_fsync = os.fsync

    def recording_fsync(fd):
        synced.append(stat.S_ISDIR(os.fstat(fd).st_mode))
        real_fsync(fd)

    monkeypatch.setattr(fingerprint_store_module.os, "fsync", recording_fsync)
    write_fingerprint_file(tmp_path / "hashes.txt", {"a": "1"})

    # File contents first, then the directory holding the renamed file
    assert synced == [False, True]
    assert [p.name for p in tmp_path.iterdir()] == ["hashes.txt"]
