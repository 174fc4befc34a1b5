import threading
from typing import TypedDict

from typing_extensions import NotRequired


class CacheStatsDict(TypedDict):
    """Serialized counters of a single cache instance."""

    hits: int
    misses: int
    evictions: int
    writes: int
    bytes_written: int
    hit_rate: float
    """Fraction of lookups that found an entry, 0 when there were no lookups"""

    average_access_time: float
    """Mean duration of timed reads, in seconds"""


class CacheMetrics(TypedDict):
    """A point-in-time report on a cache directory."""

    total_entries: int
    total_size: int
    hits: int
    misses: int
    hit_rate: float
    compression_ratio: float
    """Compressed bytes over uncompressed bytes for gzip entries"""

    average_access_time: float
    """Mean duration of a cache hit, in seconds"""

    status: str
    """One of `EXCELLENT`, `GOOD` or `NEEDS IMPROVEMENT`"""

    timestamp: float
    target_hit_rate: NotRequired[float]
    meets_target: NotRequired[bool]


class CacheStats:
    """Thread-safe hit, miss and eviction counters shared by the cache tiers."""

    def __init__(self):
        self._mutex = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._mutex:
            self.hits = 0
            self.misses = 0
            self.evictions = 0
            self.writes = 0
            self.bytes_written = 0
            self._reads = 0
            self._read_time = 0.0

    def record_hit(self) -> None:
        with self._mutex:
            self.hits += 1

    def record_miss(self) -> None:
        with self._mutex:
            self.misses += 1

    def record_eviction(self, count: int = 1) -> None:
        with self._mutex:
            self.evictions += count

    def record_write(self, size: int = 0) -> None:
        with self._mutex:
            self.writes += 1
            self.bytes_written += size

    def record_read(self, duration: float) -> None:
        """Records the wall-clock duration of one read, in seconds."""
        with self._mutex:
            self._reads += 1
            self._read_time += duration

    @property
    def hit_rate(self) -> float:
        with self._mutex:
            total = self.hits + self.misses
            return 0.0 if total == 0 else self.hits / total

    @property
    def average_access_time(self) -> float:
        with self._mutex:
            return 0.0 if self._reads == 0 else self._read_time / self._reads

    def as_dict(self) -> CacheStatsDict:
        hit_rate = self.hit_rate
        average_access_time = self.average_access_time
        with self._mutex:
            return CacheStatsDict(
                hits=self.hits,
                misses=self.misses,
                evictions=self.evictions,
                writes=self.writes,
                bytes_written=self.bytes_written,
                hit_rate=hit_rate,
                average_access_time=average_access_time,
            )

    def __repr__(self):
        return f"CacheStats(hits={self.hits}, misses={self.misses}, evictions={self.evictions})"
