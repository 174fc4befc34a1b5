"""
A module providing a bounded LRU (Least Recently Used) cache implementation.

This module contains a generic LRU cache that can store key-value pairs of any type.
The cache holds at most `capacity` entries and evicts the least recently used entry
when a new key would exceed that bound. Entries are kept in an OrderedDict in access
order, which gives O(1) lookup, refresh and eviction.

Recency is tracked with a per-cache logical clock rather than wall-clock time, so
two entries can never share the same `last_accessed` stamp and eviction order is
always deterministic.
"""

import itertools
import threading
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Generic, Hashable, List, Optional, TypeVar

from .errors import CacheConfigurationError
from .stats import CacheStats

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class CacheEntry(Generic[K, V]):
    key: K
    value: V
    last_accessed: int


def validate_capacity(capacity) -> int:
    # bool is an int subclass, but LRUCache(True) is never what anyone meant.
    if isinstance(capacity, bool) or not isinstance(capacity, int):
        raise CacheConfigurationError(f"Cache capacity must be an integer, got {capacity!r}")
    if capacity < 1:
        raise CacheConfigurationError(f"Cache capacity must be at least 1, got {capacity}")
    return capacity


class LRUCache(Generic[K, V]):
    """
    A Least Recently Used (LRU) cache with a fixed capacity.

    Items are considered "used" when they are added, overwritten or retrieved with
    `get`. When the cache holds `capacity` keys and a new key is set, exactly one
    entry is evicted first: the one with the smallest `last_accessed` stamp.

    All operations are guarded by a single lock so the cache can be shared between
    threads; the eviction decision and the insert that triggered it happen in one
    critical section.

    Args:
        capacity: Maximum number of items to store in the cache. Must be a positive integer.
        stats: Optional counters that record hits, misses and evictions.
        record_lookups: If False, `stats` only records evictions. Used when an outer cache
            counts hits and misses itself.

    Raises:
        CacheConfigurationError: If `capacity` is not a positive integer.
    """

    def __init__(self, capacity: int, stats: Optional[CacheStats] = None, record_lookups: bool = True):
        self._capacity = validate_capacity(capacity)
        self._cache: "OrderedDict[K, CacheEntry[K, V]]" = OrderedDict()
        self._clock = itertools.count(1)
        self._mutex = threading.Lock()
        self.stats = stats
        self._record_lookups = record_lookups

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        """
        Retrieves a value from the cache.
        If the key exists, the item is marked as most recently used.

        Args:
            key: The key to look up.
            default: Returned when the key is not cached.

        Returns:
            The cached value, or `default` if the key is not in the cache. A miss
            leaves the cache untouched.
        """
        with self._mutex:
            entry = self._cache.get(key)
            if entry is None:
                if self.stats is not None and self._record_lookups:
                    self.stats.record_miss()
                return default

            entry.last_accessed = next(self._clock)
            self._cache.move_to_end(key)
            if self.stats is not None and self._record_lookups:
                self.stats.record_hit()
            return entry.value

    def set(self, key: K, value: V) -> None:
        """
        Stores a value in the cache.
        If the key already exists, the value is replaced and marked as most recently used;
        the cache does not grow. If the key is new and the cache is full, the least
        recently used item is evicted first.

        Args:
            key: The key to store.
            value: The value to store.
        """
        with self._mutex:
            entry = self._cache.get(key)
            if entry is not None:
                entry.value = value
                entry.last_accessed = next(self._clock)
                self._cache.move_to_end(key)
                return

            if len(self._cache) >= self._capacity:
                # Oldest item is first in the ordered dict.
                self._cache.popitem(last=False)
                if self.stats is not None:
                    self.stats.record_eviction()

            self._cache[key] = CacheEntry(key=key, value=value, last_accessed=next(self._clock))

    def size(self) -> int:
        with self._mutex:
            return len(self._cache)

    def keys(self) -> List[K]:
        """Returns the cached keys. Callers should not rely on their order."""
        with self._mutex:
            return list(self._cache.keys())

    def entry(self, key: K) -> Optional[CacheEntry[K, V]]:
        """Returns a copy of the entry for `key` without refreshing it."""
        with self._mutex:
            entry = self._cache.get(key)
            return None if entry is None else replace(entry)

    def clear(self) -> None:
        """Removes all items from the cache."""
        with self._mutex:
            self._cache.clear()

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key) -> bool:
        # Membership checks do not count as a use.
        with self._mutex:
            return key in self._cache

    def __repr__(self):
        return f"LRUCache(capacity={self._capacity}, size={len(self)})"
