"""Tests for the two-tier emotion result cache."""

import json

from moodsticker_service.services.result_cache import ResultCache, cache_key, normalize_text


def _persistent_cache(tmp_path, clock, **kwargs):
    return ResultCache(
        cache_path=str(tmp_path / "cache.json"),
        version_path=str(tmp_path / "cache.version"),
        clock=clock,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

def test_normalize_text():
    assert normalize_text("  Hello World  ") == "hello world"


def test_cache_key_ignores_case_and_whitespace():
    assert cache_key("I had the best day ever!!") == cache_key("  i HAD the best day ever!!\n")
    assert cache_key("happy") != cache_key("sad")


# ---------------------------------------------------------------------------
# Get / put
# ---------------------------------------------------------------------------

def test_miss_on_empty_cache(cache):
    labels, found = cache.get("anything")
    assert found is False
    assert labels is None


def test_put_then_get(cache):
    cache.put("I had the best day ever!!", ["excited", "happy"])
    labels, found = cache.get("I had the best day ever!!")
    assert found is True
    assert labels == ["excited", "happy"]


def test_get_is_case_insensitive(cache):
    cache.put("Good Morning", ["calm"])
    labels, found = cache.get("  good morning ")
    assert found is True
    assert labels == ["calm"]


def test_hit_increments_count_and_touches(cache, clock):
    cache.put("hello", ["happy"])
    clock.advance(hours=1)
    cache.get("hello")
    entry = cache._persisted[cache_key("hello")]
    assert entry.hit_count == 2
    assert entry.last_used_at == clock.now


def test_returned_labels_are_a_copy(cache):
    cache.put("hello", ["happy"])
    labels, _ = cache.get("hello")
    labels.append("mutated")
    assert cache.get("hello")[0] == ["happy"]


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------

def test_entry_valid_within_ttl(cache, clock):
    cache.put("hello", ["happy"])
    clock.advance(days=7)
    assert cache.get("hello")[1] is True


def test_expired_entry_is_absent_and_purged(cache, clock):
    cache.put("hello", ["happy"])
    clock.advance(days=7, seconds=1)
    labels, found = cache.get("hello")
    assert found is False
    assert labels is None
    assert cache.stats()["hot_count"] == 0
    assert cache.stats()["persisted_count"] == 0


def test_hit_resets_idle_window(cache, clock):
    cache.put("hello", ["happy"])
    clock.advance(days=6)
    assert cache.get("hello")[1] is True
    clock.advance(days=6)
    assert cache.get("hello")[1] is True


# ---------------------------------------------------------------------------
# LRU eviction
# ---------------------------------------------------------------------------

def test_hot_tier_evicts_least_recently_used(clock):
    cache = ResultCache(hot_capacity=2, clock=clock)
    cache.put("first", ["a"])
    clock.advance(seconds=1)
    cache.put("second", ["b"])
    clock.advance(seconds=1)
    cache.get("first")  # second is now the least recently used
    clock.advance(seconds=1)
    cache.put("third", ["c"])

    hot = cache._hot
    assert len(hot) == 2
    assert cache_key("first") in hot
    assert cache_key("third") in hot
    assert cache_key("second") not in hot


def test_evicted_entry_is_promoted_from_persisted_tier(clock):
    cache = ResultCache(hot_capacity=2, clock=clock)
    cache.put("first", ["a"])
    clock.advance(seconds=1)
    cache.put("second", ["b"])
    clock.advance(seconds=1)
    cache.put("third", ["c"])
    assert cache_key("first") not in cache._hot

    labels, found = cache.get("first")
    assert found is True
    assert labels == ["a"]
    assert cache_key("first") in cache._hot
    assert len(cache._hot) == 2


def test_persisted_tier_keeps_most_used(clock):
    cache = ResultCache(persisted_capacity=2, clock=clock)
    cache.put("popular", ["a"])
    cache.get("popular")
    cache.get("popular")
    clock.advance(seconds=1)
    cache.put("recent", ["b"])
    clock.advance(seconds=1)
    cache.put("newest", ["c"])

    persisted = cache._persisted
    assert len(persisted) == 2
    assert cache_key("popular") in persisted
    assert cache_key("newest") in persisted


# ---------------------------------------------------------------------------
# Version tag
# ---------------------------------------------------------------------------

def test_version_change_clears_cache(cache):
    assert cache.check_version_and_clear_if_needed(1) is True
    cache.put("hello", ["happy"])
    assert cache.check_version_and_clear_if_needed(1) is False
    assert cache.get("hello")[1] is True

    assert cache.check_version_and_clear_if_needed(2) is True
    assert cache.get("hello")[1] is False
    assert cache.stats()["version"] == 2


def test_version_tag_is_persisted(tmp_path, clock):
    cache = _persistent_cache(tmp_path, clock)
    cache.check_version_and_clear_if_needed(3)
    assert json.loads((tmp_path / "cache.version").read_text()) == 3

    reloaded = _persistent_cache(tmp_path, clock)
    reloaded.load()
    assert reloaded.version == 3
    assert reloaded.check_version_and_clear_if_needed(3) is False


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def test_put_writes_file(tmp_path, clock):
    cache = _persistent_cache(tmp_path, clock)
    cache.put("hello", ["happy", "excited"])

    records = json.loads((tmp_path / "cache.json").read_text())
    assert len(records) == 1
    record = records[0]
    assert record["key"] == cache_key("hello")
    assert record["labels"] == ["happy", "excited"]
    assert record["hit_count"] == 1
    assert "created_at" in record
    assert "last_used_at" in record


def test_load_restores_entries(tmp_path, clock):
    cache = _persistent_cache(tmp_path, clock)
    cache.put("hello", ["happy"])

    reloaded = _persistent_cache(tmp_path, clock)
    reloaded.load()
    labels, found = reloaded.get("hello")
    assert found is True
    assert labels == ["happy"]


def test_load_drops_expired_entries(tmp_path, clock):
    cache = _persistent_cache(tmp_path, clock)
    cache.put("old", ["sad"])
    clock.advance(days=5)
    cache.put("new", ["happy"])
    clock.advance(days=3)

    reloaded = _persistent_cache(tmp_path, clock)
    reloaded.load()
    assert reloaded.stats()["persisted_count"] == 1
    assert reloaded.get("new")[1] is True


def test_load_corrupt_file_starts_empty(tmp_path, clock):
    (tmp_path / "cache.json").write_text("{not valid json")
    cache = _persistent_cache(tmp_path, clock)
    cache.load()
    assert cache.stats()["persisted_count"] == 0
    cache.put("hello", ["happy"])
    assert cache.get("hello")[1] is True


def test_load_wrong_shape_starts_empty(tmp_path, clock):
    (tmp_path / "cache.json").write_text(json.dumps({"key": "not a list"}))
    cache = _persistent_cache(tmp_path, clock)
    cache.load()
    assert cache.stats()["persisted_count"] == 0


def test_load_naive_timestamps_starts_empty(tmp_path, clock):
    """Entries without a UTC offset are rejected instead of breaking startup."""
    (tmp_path / "cache.json").write_text(json.dumps([{
        "key": cache_key("hello"),
        "labels": ["happy"],
        "hit_count": 1,
        "created_at": "2025-12-31T00:00:00",
        "last_used_at": "2025-12-31T00:00:00",
    }]))
    cache = _persistent_cache(tmp_path, clock)
    cache.load()
    assert cache.stats()["persisted_count"] == 0
    cache.put("hello", ["sad"])
    assert cache.get("hello") == (["sad"], True)


def test_load_missing_file(tmp_path, clock):
    cache = _persistent_cache(tmp_path, clock)
    cache.load()
    assert cache.stats()["persisted_count"] == 0
    assert cache.version is None


def test_save_failure_is_not_raised(tmp_path, clock):
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory")
    cache = ResultCache(cache_path=str(blocker / "cache.json"), clock=clock)
    cache.put("hello", ["happy"])
    assert cache.get("hello")[1] is True


def test_clear(tmp_path, clock):
    cache = _persistent_cache(tmp_path, clock)
    cache.put("hello", ["happy"])
    cache.clear()
    assert cache.get("hello")[1] is False
    assert json.loads((tmp_path / "cache.json").read_text()) == []
