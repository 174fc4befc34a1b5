"""
A module providing a persistent disk-based cache implementation.

This module contains a generic disk cache that can store serializable objects of any type.
The cache persists entries as compressed files on disk and implements an LRU (Least Recently Used)
eviction policy based on file modification times. Filesystem errors are logged and treated
as cache misses so that a broken cache directory never takes down the host process.
"""

import gzip
import hashlib
import json
import logging
import os
import re
import tempfile
import threading
import time
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from .lru_cache import validate_capacity
from .stats import CacheStats

T = TypeVar("T")

_ENTRY_NAME = re.compile(r"^[0-9a-f]{64}$")


log = logging.getLogger(__name__)


class DiskCache(Generic[T]):
    """
    A persistent filesystem-based cache implementation.

    This cache stores entries as compressed files on disk and implements an LRU eviction
    policy based on file modification times (mtime). While access times (atime) would be more
    semantically accurate for LRU, we use mtime because:

    1. Many modern filesystems mount with noatime for performance reasons.
    2. Even when atime updates are enabled, they may be subject to update delays.
    3. mtime updates are more reliably supported across different filesystems.

    The cache stamps mtimes itself with strictly increasing nanosecond values, so two
    writes in the same clock tick still have a well-defined order. Entries with equal
    mtimes (e.g. written by another process) are evicted in file name order.
    """

    def __init__(
        self,
        cache_dir: str,
        max_size: int | None = None,
        serializer: Callable[[T], Any] | None = None,
        deserializer: Callable[[Any], T] | None = None,
        log_warnings: bool = True,
        mkdirs: bool = True,
        stats: CacheStats | None = None,
        record_lookups: bool = True,
    ):
        """
        Creates a new DiskCache instance.

        Args:
            cache_dir: Directory where cache files will be stored.
            max_size: Maximum number of entries to store in the cache.
                     If not specified, the cache will grow unbounded.
            serializer: Optional function to convert values to JSON-serializable format.
            deserializer: Optional function to convert JSON-deserialized data back to original type.
                         Should be the inverse of serializer.
            stats: Optional counters that record hits, misses, evictions and writes.
            record_lookups: If False, `stats` only records writes and evictions. Used when an
                          outer cache counts hits and misses itself.

        Raises:
            CacheConfigurationError: If `max_size` is given but is not a positive integer.

        Example:
            # Cache build manifests keyed by content hash.
            cache = DiskCache[Manifest](
                cache_dir=".turbo/cache/build",
                max_size=500,
                serializer=lambda m: m.as_dict(),
                deserializer=Manifest.from_dict,
            )
        """
        self._dir = cache_dir
        self._max_size = None if max_size is None else validate_capacity(max_size)
        self._serializer = serializer
        self._deserializer = deserializer
        self._log_warnings = log_warnings
        self._mkdirs = mkdirs
        self.stats = stats
        self._record_lookups = record_lookups
        self._stamp_lock = threading.Lock()
        self._last_stamp = 0

    @property
    def cache_dir(self) -> str:
        return self._dir

    @property
    def max_size(self) -> int | None:
        return self._max_size

    def _get_entry_path(self, key: str) -> str:
        """Gets the file path for a cache entry."""
        k = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return os.path.join(self._dir, k)

    def _touch(self, path: str) -> None:
        with self._stamp_lock:
            stamp = max(time.time_ns(), self._last_stamp + 1)
            self._last_stamp = stamp
        os.utime(path, ns=(stamp, stamp))

    def _warn(self, msg: str) -> None:
        if self._log_warnings:
            log.warning(msg)

    def get(self, key: str, default: T | None = None) -> T | None:
        """
        Retrieves a value from the cache.
        Updates the entry's modification time when read.

        Args:
            key: The key to look up in the cache.
            default: Returned when the key is not cached.

        Returns:
            The cached value, or `default` on a miss. Unreadable or corrupt entries are
            logged and reported as misses.
        """
        start = time.perf_counter()
        file_path = self._get_entry_path(key)
        try:
            with gzip.open(file_path, "rb") as f:
                payload = json.loads(f.read().decode("utf-8"))
            data = payload["value"]
            if self._deserializer is not None:
                data = self._deserializer(data)

            self._touch(file_path)
        except FileNotFoundError:
            self._record_miss()
            return default
        except Exception as e:
            # If we have any other error, it's unexpected, but we won't want to crash an app,
            # so log and treat it like a cache miss.
            self._warn(f"Unexpected error reading from disk cache: {e}")
            self._record_miss()
            return default

        if self.stats is not None and self._record_lookups:
            self.stats.record_hit()
            self.stats.record_read(time.perf_counter() - start)
        return data

    def _record_miss(self) -> None:
        if self.stats is not None and self._record_lookups:
            self.stats.record_miss()

    def set(self, key: str, value: T) -> None:
        """
        Stores a value in the cache.
        If the cache is over its maximum size afterwards, the least recently used entries are evicted.

        The entry is written to a temporary file and renamed into place, so a failed write
        leaves any previous value for `key` intact and readers never see a partial file.

        Args:
            key: The key to store the value under.
            value: The value to store in the cache.
        """
        tmp_path = None
        try:
            if self._serializer is not None:
                value = self._serializer(value)
            payload = gzip.compress(json.dumps({"key": key, "value": value}).encode("utf-8"))

            # mkdirs exists only to make it easy to simulate cross-platform write errors
            # (permissions, etc wouldn't work on github actions on windows)
            if self._mkdirs:
                os.makedirs(self._dir, exist_ok=True)
            file_path = self._get_entry_path(key)

            fd, tmp_path = tempfile.mkstemp(dir=self._dir, prefix=".tmp-")
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            os.replace(tmp_path, file_path)
            tmp_path = None
            self._touch(file_path)

            if self.stats is not None:
                self.stats.record_write(len(payload))

            self._evict_if_full()
        except Exception as e:
            # Swallow any cache write errors. Don't crash the app.
            self._warn(f"Failed to write to disk cache: {e}")
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except FileNotFoundError:
                    pass

    def _entry_paths(self) -> list[str]:
        try:
            names = os.listdir(self._dir)
        except FileNotFoundError:
            return []
        # Only files we wrote; metrics and other bookkeeping files can share the directory.
        return [os.path.join(self._dir, n) for n in names if _ENTRY_NAME.match(n)]

    def _evict_if_full(self) -> None:
        if self._max_size is None:
            return

        paths = self._entry_paths()
        if len(paths) <= self._max_size:
            return

        stats = [(p, os.stat(p).st_mtime_ns) for p in paths]
        stats.sort(key=lambda x: (x[1], x[0]))
        oldest_paths = stats[0 : len(stats) - self._max_size]

        for path, _ in oldest_paths:
            os.unlink(path)
            log.debug("Evicted disk cache entry %s", path)
        if self.stats is not None:
            self.stats.record_eviction(len(oldest_paths))

    def size(self) -> int:
        return len(self._entry_paths())

    def keys(self) -> list[str]:
        """Returns the keys of all readable entries. Order is unspecified."""
        keys = []
        for path in self._entry_paths():
            try:
                with gzip.open(path, "rb") as f:
                    keys.append(json.loads(f.read().decode("utf-8"))["key"])
            except Exception as e:
                self._warn(f"Skipping unreadable disk cache entry {path}: {e}")
        return keys

    def disk_usage(self) -> int:
        """Returns the number of bytes the entries occupy on disk."""
        total = 0
        for path in self._entry_paths():
            try:
                total += os.path.getsize(path)
            except FileNotFoundError:
                pass
        return total

    def clear(self) -> None:
        """Removes all entries from the cache directory."""
        for path in self._entry_paths():
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass

    def __len__(self) -> int:
        return self.size()

    def __repr__(self):
        return f"DiskCache(cache_dir={self._dir!r}, max_size={self._max_size})"
