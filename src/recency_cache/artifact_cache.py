"""
This module implements a two-layer cache for build artifacts.

The caching system consists of:
1. A fast in-memory LRU cache for recently used artifacts
2. An optional persistent disk-based cache that serves as a backing store

Artifacts are keyed by the task that produced them (e.g. `build`, `format:check`)
and the content hash of that task's inputs, so unchanged inputs always map to the
same entry.
"""

import logging
import time
from typing import Any, Generic, TypeVar

from . import disk_cache, lru_cache
from .config import CacheSettings
from .hashing import task_slug
from .stats import CacheStats

T = TypeVar("T")

log = logging.getLogger(__name__)


def _create_cache_key(task: str | None, content_hash: str | None) -> str:
    """Creates a unique cache key from a task name and the content hash of its inputs."""
    if not task:
        raise ValueError("Task must be provided")
    if not content_hash:
        raise ValueError("Content hash must be provided")
    return f"{task_slug(task)}:{content_hash}"


class ArtifactCache(Generic[T]):
    """
    A two-layer cache for build artifacts with both in-memory and filesystem storage.

    When retrieving an artifact, the cache first checks the in-memory store. On a miss,
    it falls back to the filesystem cache and promotes the result into memory.
    When storing an artifact, it is written to both layers.

    If `stats` is given, each `get` counts as exactly one hit or one miss, whichever
    layer served it.
    """

    def __init__(
        self,
        memory_cache: lru_cache.LRUCache[str, T],
        disk_cache: disk_cache.DiskCache[T] | None = None,
        stats: CacheStats | None = None,
    ):
        """
        Initialize the artifact cache.

        Args:
            memory_cache: The memory cache to use.
            disk_cache: Optional disk cache to use as backing store.
            stats: Optional counters for lookups across both layers.
        """
        self.memory_cache = memory_cache
        self.disk_cache = disk_cache
        self.stats = stats

    @classmethod
    def from_settings(cls, settings: CacheSettings, stats: CacheStats | None = None) -> "ArtifactCache[Any]":
        # The layers share `stats` for evictions and writes; lookups are counted here.
        memory = lru_cache.LRUCache[str, Any](settings.memory_max_size, stats=stats, record_lookups=False)
        disk = disk_cache.DiskCache[Any](
            cache_dir=settings.cache_dir,
            max_size=settings.disk_max_size,
            log_warnings=settings.log_warnings,
            stats=stats,
            record_lookups=False,
        )
        return cls(memory, disk, stats=stats)

    def get(self, task: str, content_hash: str) -> T | None:
        """
        Retrieve an artifact from the cache.

        Args:
            task: The name of the task that produced the artifact.
            content_hash: The content hash of the task's inputs.

        Returns:
            The cached artifact, or None if neither layer has it.

        Raises:
            ValueError: If task or content_hash is empty.
        """
        cache_key = _create_cache_key(task, content_hash)
        start = time.perf_counter()
        value = self._lookup(cache_key)

        if self.stats is not None:
            if value is None:
                self.stats.record_miss()
            else:
                self.stats.record_hit()
                self.stats.record_read(time.perf_counter() - start)
        return value

    def _lookup(self, cache_key: str) -> T | None:
        # First check memory cache.
        value = self.memory_cache.get(cache_key)
        if value is not None:
            return value

        # If not in memory and disk cache exists, check disk cache.
        if self.disk_cache is not None:
            value = self.disk_cache.get(cache_key)
            if value is not None:
                log.debug("Promoting %s from disk to memory", cache_key)
                self.memory_cache.set(cache_key, value)
                return value

        return None

    def set(self, task: str, content_hash: str, value: T) -> None:
        """
        Store an artifact in the cache.

        Args:
            task: The name of the task that produced the artifact.
            content_hash: The content hash of the task's inputs.
            value: The artifact to store. Must be JSON-serializable (or handled by the
                disk cache's serializer) when a disk layer is configured.

        Raises:
            ValueError: If task or content_hash is empty.
        """
        cache_key = _create_cache_key(task, content_hash)

        # Update memory cache.
        self.memory_cache.set(cache_key, value)

        # Update disk cache if available.
        if self.disk_cache is not None:
            self.disk_cache.set(cache_key, value)
