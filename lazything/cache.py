"""
Persistent key/value cache with TTL expiry and LRU eviction.

Two instances back a hunt: commit dates and parsed proxy lists, both keyed
by blob sha. A cached None is a real value ("looked up, nothing there"),
so `get` signals a miss with the MISSING sentinel instead.
"""

import json
import logging
import os
import time
from collections import OrderedDict
from pathlib import Path
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

CACHE_DIR = os.path.join(Path.home(), '.cache/lazything/cache')

DATE_CACHE_ID = 'dateCache'
PROXY_CACHE_ID = 'proxyCache'


class _Missing:
    """Sentinel type for cache misses."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return 'MISSING'


MISSING = _Missing()


class TTLCache:
    """
    Bounded cache where entries expire a fixed time after insertion.

    Usage:
        cache = TTLCache('dateCache', ttl=3600, max_size=1000)
        cache.load()
        if (value := cache.get(sha)) is MISSING:
            value = await lookup()
            cache.set(sha, value)
        cache.save()

    Values must be JSON-serializable.
    """

    VERSION = 1

    def __init__(
        self,
        cache_id: str,
        ttl: float,
        max_size: int,
        cache_dir: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if max_size <= 0:
            raise ValueError("max_size must be positive")

        self.cache_id = cache_id
        self.ttl = ttl
        self.max_size = max_size
        self.cache_dir = Path(cache_dir or CACHE_DIR)
        self.clock = clock

        # key -> (expires_at, value); order is least to most recently used
        self._entries: "OrderedDict[str, tuple]" = OrderedDict()
        self._loaded = False

    @property
    def path(self) -> Path:
        return self.cache_dir / self.cache_id

    # =========================================================================
    # Access
    # =========================================================================

    def get(self, key: str, default: Any = MISSING) -> Any:
        """Return the live value for key, or default on a miss."""
        entry = self._entries.get(key)
        if entry is None:
            return default

        expires_at, value = entry
        if expires_at <= self.clock():
            del self._entries[key]
            return default

        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: Any):
        """Insert or overwrite key, evicting the LRU entry past max_size."""
        self._entries[key] = (self.clock() + self.ttl, value)
        self._entries.move_to_end(key)

        while len(self._entries) > self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"{self.cache_id}: evicted {evicted}")

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not MISSING

    def __len__(self) -> int:
        self.prune()
        return len(self._entries)

    def prune(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self.clock()
        expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self):
        self._entries.clear()

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> bool:
        """
        Hydrate from disk.

        Safe to call more than once; later calls are no-ops. A missing or
        unreadable file leaves the cache empty.

        Returns:
            True if entries were read from disk
        """
        if self._loaded:
            return bool(self._entries)
        self._loaded = True

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return False
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache {self.path}: {e}")
            return False

        entries = data.get('entries') if isinstance(data, dict) else None
        if not isinstance(entries, list):
            logger.warning(f"Ignoring malformed cache {self.path}")
            return False

        now = self.clock()
        for item in entries:
            if not isinstance(item, dict) or 'key' not in item:
                continue
            try:
                expires_at = float(item.get('expires', 0))
            except (TypeError, ValueError):
                continue
            if expires_at <= now:
                continue
            self._entries[str(item['key'])] = (expires_at, item.get('value'))

        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

        logger.debug(f"{self.cache_id}: loaded {len(self._entries)} entries")
        return bool(self._entries)

    def save(self):
        """Flush live entries to disk in LRU order."""
        self.prune()
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        payload: Dict[str, Any] = {
            'version': self.VERSION,
            'cache_id': self.cache_id,
            'entries': [
                {'key': key, 'expires': expires_at, 'value': value}
                for key, (expires_at, value) in self._entries.items()
            ],
        }

        tmp_path = self.path.with_name(self.path.name + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, ensure_ascii=False)
        os.replace(tmp_path, self.path)

        logger.debug(f"{self.cache_id}: saved {len(self._entries)} entries to {self.path}")


def create_caches(config, cache_dir: Optional[str] = None, clock: Callable[[], float] = time.time):
    """Build the (date cache, proxy cache) pair for a hunt config."""
    date_cache = TTLCache(
        DATE_CACHE_ID,
        ttl=config.date_cache_ttl,
        max_size=config.date_cache_size,
        cache_dir=cache_dir,
        clock=clock,
    )
    proxy_cache = TTLCache(
        PROXY_CACHE_ID,
        ttl=config.proxy_cache_ttl,
        max_size=config.proxy_cache_size,
        cache_dir=cache_dir,
        clock=clock,
    )
    return date_cache, proxy_cache
