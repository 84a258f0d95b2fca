"""Tests for the file-backed cache."""

import json
import sys
from datetime import timedelta
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fakes import utc
from statstracker.cache import CacheEntry, FileCache, default_cache_dir
from statstracker.errors import CacheError, CacheMiss


class _Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def test_set_then_get_round_trips_value(tmp_path):
    """Verify a stored JSON value is returned unchanged before it expires."""
    cache = FileCache(tmp_path)
    value = {"number": 42, "labels": ["a", "b"], "merged": None}

    cache.set("github:pr:owner:repo:42", value, timedelta(hours=1))

    assert cache.get("github:pr:owner:repo:42") == value


def test_get_missing_key_raises_cache_miss(tmp_path):
    """Verify an absent key is reported as a miss."""
    cache = FileCache(tmp_path)

    with pytest.raises(CacheMiss):
        cache.get("github:pr:owner:repo:1")


def test_expired_entry_is_a_miss_and_file_is_removed(tmp_path):
    """Verify reading an expired entry raises CacheMiss and deletes its file."""
    clock = _Clock(utc(2024, 1, 1, 12))
    cache = FileCache(tmp_path, clock=clock)
    cache.set("circleci:flaky-tests:org:repo", [1, 2, 3], timedelta(minutes=5))
    path = cache.path_for("circleci:flaky-tests:org:repo")
    assert path.exists()

    clock.now = utc(2024, 1, 1, 12, 6)

    with pytest.raises(CacheMiss):
        cache.get("circleci:flaky-tests:org:repo")
    assert not path.exists()


def test_entry_written_already_expired_is_removed_on_read(tmp_path):
    """Verify an on-disk entry whose expiry is in the past is removed on first read."""
    cache = FileCache(tmp_path)
    path = cache.path_for("deploy:release:p:r:rel-1")
    path.parent.mkdir(parents=True, exist_ok=True)
    entry = CacheEntry(data="stale", created_at=utc(2020, 1, 1), expires_at=utc(2020, 1, 2))
    path.write_text(json.dumps(entry.to_dict()), encoding="utf-8")

    with pytest.raises(CacheMiss):
        cache.get("deploy:release:p:r:rel-1")
    assert not path.exists()


def test_zero_or_missing_ttl_never_expires(tmp_path):
    """Verify a ttl of None or zero stores the entry without an expiry."""
    clock = _Clock(utc(2024, 1, 1))
    cache = FileCache(tmp_path, clock=clock)
    cache.set("github:commit:o:r:abc", {"sha": "abc"}, timedelta(0))
    cache.set("github:commit:o:r:def", {"sha": "def"})

    clock.now = utc(2034, 1, 1)

    assert cache.get("github:commit:o:r:abc") == {"sha": "abc"}
    assert cache.get("github:commit:o:r:def") == {"sha": "def"}


def test_path_for_shards_on_first_two_hex_chars(tmp_path):
    """Verify entries live at <base>/<hash[:2]>/<hash[2:]>.json."""
    cache = FileCache(tmp_path)
    path = cache.path_for("any-key")

    assert path.parent.parent == tmp_path
    assert len(path.parent.name) == 2
    assert path.suffix == ".json"
    assert len(path.parent.name + path.stem) == 64


def test_stored_envelope_has_data_and_timestamps(tmp_path):
    """Verify the on-disk envelope records data, created_at and expires_at."""
    cache = FileCache(tmp_path, clock=_Clock(utc(2024, 3, 1)))
    cache.set("k", "v", timedelta(hours=1))

    payload = json.loads(cache.path_for("k").read_text(encoding="utf-8"))

    assert payload == {
        "data": "v",
        "created_at": "2024-03-01T00:00:00Z",
        "expires_at": "2024-03-01T01:00:00Z",
    }


def test_corrupt_entry_raises_cache_error(tmp_path):
    """Verify an undecodable file surfaces as CacheError, not a miss."""
    cache = FileCache(tmp_path)
    path = cache.path_for("k")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(CacheError):
        cache.get("k")


def test_delete_removes_entry_and_tolerates_missing_key(tmp_path):
    """Verify delete removes an existing entry and ignores absent keys."""
    cache = FileCache(tmp_path)
    cache.set("k", 1, timedelta(hours=1))

    cache.delete("k")
    cache.delete("k")

    with pytest.raises(CacheMiss):
        cache.get("k")


def test_default_cache_dir_honours_xdg_cache_home(monkeypatch, tmp_path):
    """Verify the Linux cache directory follows XDG_CACHE_HOME."""
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))

    assert default_cache_dir() == tmp_path / "statstracker"
