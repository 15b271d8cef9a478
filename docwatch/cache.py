"""
TTL cache — an explicit object passed to whoever needs caching.

Used for:
- document metadata (short TTL, saves API calls between close polls)
- user display names
- sent-notification keys (resend guard in the poller)

Entries are kept in insertion order (OrderedDict as LRU-by-write).
Prune policy on every write: drop expired entries, then evict the oldest
until size <= max_entries.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

from loguru import logger

from docwatch.clock import Clock, system_clock


@dataclass
class CacheEntry:
    value: Any
    expires_at: int  # ms


class TTLCache:
    """In-memory key → value cache with per-entry expiry."""

    def __init__(
        self,
        ttl_ms: int,
        max_entries: int = 1000,
        *,
        clock: Clock = system_clock,
        name: str = "cache",
    ) -> None:
        if ttl_ms <= 0:
            raise ValueError(f"ttl_ms must be positive, got {ttl_ms}")
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.ttl_ms = ttl_ms
        self.max_entries = max_entries
        self.name = name
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return default
        return entry.value

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        entry = self._entries.get(key)
        if entry is None:
            return False
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return False
        return True

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for e in self._entries.values() if now < e.expires_at)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any, ttl_ms: int | None = None) -> None:
        ttl = self.ttl_ms if ttl_ms is None else ttl_ms
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)
        self.prune()

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``. Returns the count removed."""
        keys = [k for k in self._entries if k.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()
        logger.debug(f"[cache] {self.name} cleared")

    def prune(self) -> int:
        """Apply the eviction policy. Returns the number of entries removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now >= e.expires_at]
        for key in expired:
            del self._entries[key]

        evicted = 0
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
            evicted += 1

        if evicted:
            logger.debug(f"[cache] {self.name}: evicted {evicted} oldest entries")
        return len(expired) + evicted

    def stats(self) -> dict[str, int]:
        return {
            "size": len(self),
            "ttl_ms": self.ttl_ms,
            "max_entries": self.max_entries,
        }

    def __repr__(self) -> str:
        return f"TTLCache(name={self.name!r}, size={len(self)}, ttl_ms={self.ttl_ms})"
