import base64
import hashlib
import json
import logging
import os
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from ..clock import Clock, utcnow
from ..models.cache import CacheEntry

logger = logging.getLogger(__name__)

DEFAULT_HOT_CAPACITY = 100
DEFAULT_PERSISTED_CAPACITY = 1000
DEFAULT_TTL = timedelta(days=7)

_entries_adapter = TypeAdapter(list[CacheEntry])


def normalize_text(text: str) -> str:
    return text.strip().casefold()


def cache_key(text: str) -> str:
    """SHA-256 (base64) of the trimmed, case-folded text."""
    digest = hashlib.sha256(normalize_text(text).encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


class ResultCache:
    """Two-tier text -> emotion labels cache.

    The hot tier is small and LRU-evicted; the persisted tier is written to
    ``cache_path`` as JSON after every write. Entries idle for longer than
    ``ttl`` are treated as absent. Load and save failures are logged and
    never raised: a broken cache file only costs extra classifier calls.
    """

    def __init__(self, cache_path: Optional[str] = None, version_path: Optional[str] = None,
                 hot_capacity: int = DEFAULT_HOT_CAPACITY,
                 persisted_capacity: int = DEFAULT_PERSISTED_CAPACITY,
                 ttl: timedelta = DEFAULT_TTL, clock: Clock = utcnow):
        self.cache_path = Path(cache_path) if cache_path else None
        self.version_path = Path(version_path) if version_path else None
        self.hot_capacity = hot_capacity
        self.persisted_capacity = persisted_capacity
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._hot: dict[str, CacheEntry] = {}
        self._persisted: dict[str, CacheEntry] = {}
        self._version: Optional[int] = None

    @property
    def version(self) -> Optional[int]:
        return self._version

    def _expired(self, entry: CacheEntry, now: datetime) -> bool:
        return now - entry.last_used_at > self.ttl

    # ---- lookup / insert ----

    def get(self, text: str) -> tuple[list[str] | None, bool]:
        key = cache_key(text)
        now = self._clock()
        with self._lock:
            entry = self._hot.get(key)
            tier = "hot"
            if entry is None:
                entry = self._persisted.get(key)
                tier = "persisted"
            if entry is None:
                return None, False

            if self._expired(entry, now):
                self._hot.pop(key, None)
                self._persisted.pop(key, None)
                logger.debug("Expired cache entry removed: %r", text)
                return None, False

            entry.hit_count += 1
            entry.last_used_at = now
            if tier == "persisted":
                self._add_to_hot(key, entry)
            logger.debug("Cache %s hit: %r -> %s", tier, text, entry.labels)
            return list(entry.labels), True

    def put(self, text: str, labels: list[str]):
        key = cache_key(text)
        now = self._clock()
        entry = CacheEntry(
            key=key,
            labels=list(labels),
            hit_count=1,
            created_at=now,
            last_used_at=now,
        )
        with self._lock:
            self._add_to_hot(key, entry)
            self._persisted[key] = entry
            logger.debug("Cached: %r -> %s", text, labels)
            self._save_locked()

    def _add_to_hot(self, key: str, entry: CacheEntry):
        if key not in self._hot and len(self._hot) >= self.hot_capacity:
            oldest = min(self._hot, key=lambda k: self._hot[k].last_used_at)
            del self._hot[oldest]
        self._hot[key] = entry

    def clear(self):
        with self._lock:
            self._hot.clear()
            self._persisted.clear()
            self._save_locked()

    def check_version_and_clear_if_needed(self, current_version: int) -> bool:
        """Wipe both tiers if ``current_version`` differs from the stored tag."""
        with self._lock:
            if self._version == current_version:
                return False
            logger.info("Cache version changed (%s -> %s), clearing %d entries",
                        self._version, current_version, len(self._persisted))
            self._hot.clear()
            self._persisted.clear()
            self._version = current_version
            self._save_version_locked()
            self._save_locked()
            return True

    def stats(self) -> dict:
        with self._lock:
            return {
                "hot_count": len(self._hot),
                "persisted_count": len(self._persisted),
                "version": self._version,
                "persistent": self.cache_path is not None,
            }

    # ---- persistence ----

    def load(self):
        """Load persisted entries and the version tag, dropping expired entries."""
        with self._lock:
            self._version = self._load_version_locked()
            if not self.cache_path or not self.cache_path.exists():
                return
            try:
                raw = self.cache_path.read_text(encoding="utf-8")
                entries = _entries_adapter.validate_json(raw)
            except (OSError, ValueError, ValidationError) as e:
                logger.error("Cache load failed, starting empty: %s", e)
                return

            now = self._clock()
            valid = 0
            expired = 0
            for entry in entries:
                if self._expired(entry, now):
                    expired += 1
                    continue
                self._persisted[entry.key] = entry
                valid += 1
            logger.info("Loaded %d valid cache entries, dropped %d expired", valid, expired)

    def save(self):
        with self._lock:
            self._save_locked()

    def _save_locked(self):
        now = self._clock()
        valid = [e for e in self._persisted.values() if not self._expired(e, now)]
        valid.sort(key=lambda e: (e.hit_count, e.last_used_at), reverse=True)
        top = valid[:self.persisted_capacity]
        # persisted tier never holds more than what would be written
        self._persisted = {e.key: e for e in top}
        if not self.cache_path:
            return
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.cache_path.with_suffix(self.cache_path.suffix + ".tmp")
            tmp_path.write_bytes(_entries_adapter.dump_json(top, indent=2))
            os.replace(tmp_path, self.cache_path)
        except OSError as e:
            logger.error("Cache save failed: %s", e)
            return
        logger.debug("Saved %d cache entries, skipped %d low-priority", len(top), len(valid) - len(top))

    def _load_version_locked(self) -> Optional[int]:
        if not self.version_path or not self.version_path.exists():
            return None
        try:
            return int(json.loads(self.version_path.read_text(encoding="utf-8")))
        except (OSError, ValueError, TypeError) as e:
            logger.error("Cache version load failed: %s", e)
            return None

    def _save_version_locked(self):
        if not self.version_path:
            return
        try:
            self.version_path.parent.mkdir(parents=True, exist_ok=True)
            self.version_path.write_text(json.dumps(self._version), encoding="utf-8")
        except OSError as e:
            logger.error("Cache version save failed: %s", e)
