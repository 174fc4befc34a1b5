"""
Monitors a cache directory: size, compression ratio and hit rate against a target.
"""

import gzip
import json
import logging
import os
import time
from dataclasses import dataclass
from typing import List, Optional

from tqdm.auto import tqdm

from .config import DEFAULT_TARGET_HIT_RATE, METRICS_FILE_NAME, validate_hit_rate
from .stats import CacheMetrics, CacheStats

GZIP_MAGIC = b"\x1f\x8b"

STATUS_EXCELLENT = "EXCELLENT"
STATUS_GOOD = "GOOD"
STATUS_NEEDS_IMPROVEMENT = "NEEDS IMPROVEMENT"

# Below the target but still acceptable.
GOOD_HIT_RATE = 0.7
LARGE_CACHE_SIZE = 3 * 1024**3
SLOW_ACCESS_TIME = 0.1

log = logging.getLogger(__name__)


@dataclass
class ScannedEntry:
    path: str
    size: int
    mtime_ns: int
    uncompressed_size: Optional[int] = None
    """Size of the decompressed payload, or None if the file is not gzip"""


def _uncompressed_size(path: str) -> Optional[int]:
    try:
        with open(path, "rb") as f:
            if f.read(2) != GZIP_MAGIC:
                return None
        total = 0
        with gzip.open(path, "rb") as f:
            while True:
                chunk = f.read(64 * 1024)
                if not chunk:
                    break
                total += len(chunk)
        return total
    except (OSError, EOFError) as e:
        log.debug("Could not decompress %s: %s", path, e)
        return None


def performance_status(hit_rate: float, target_hit_rate: float) -> str:
    if hit_rate >= target_hit_rate:
        return STATUS_EXCELLENT
    if hit_rate >= GOOD_HIT_RATE:
        return STATUS_GOOD
    return STATUS_NEEDS_IMPROVEMENT


def recommendations(metrics: CacheMetrics) -> List[str]:
    """Suggestions for improving a cache, based on a report from `CacheMonitor.analyze`."""
    tips = []
    if not metrics.get("meets_target", True):
        tips.append("Review task inputs to reduce unnecessary cache invalidation")
        tips.append("Consider increasing the cache size limit if storage allows")
        tips.append("Check for frequently changing files that should be excluded from inputs")
    if metrics["total_size"] > LARGE_CACHE_SIZE:
        tips.append("Cache size is large, consider pruning more aggressively")
    if metrics["average_access_time"] > SLOW_ACCESS_TIME:
        tips.append("Cache access time is high, consider faster storage for the cache directory")
    return tips


class CacheMonitor:
    def __init__(
        self,
        cache_dir: str,
        target_hit_rate: float = DEFAULT_TARGET_HIT_RATE,
        metrics_file: Optional[str] = None,
        show_progress: bool = False,
    ):
        self.cache_dir = cache_dir
        self.target_hit_rate = validate_hit_rate(target_hit_rate)
        self.metrics_file = metrics_file
        self.show_progress = show_progress

    def _check_dir(self) -> None:
        if not os.path.isdir(self.cache_dir):
            raise FileNotFoundError(f"Cache directory not found: {self.cache_dir}. Run a cached task first.")

    def _walk(self) -> List[str]:
        paths = []
        for root, _, files in os.walk(self.cache_dir):
            for name in files:
                if name == METRICS_FILE_NAME:
                    continue
                paths.append(os.path.join(root, name))
        return paths

    def scan(self) -> List[ScannedEntry]:
        """Recursively lists every file in the cache directory."""
        self._check_dir()
        entries = []
        for path in tqdm(self._walk(), desc="Scanning cache", unit="file", disable=not self.show_progress):
            try:
                st = os.stat(path)
            except FileNotFoundError:
                # Evicted while we were scanning.
                continue
            entries.append(
                ScannedEntry(
                    path=path, size=st.st_size, mtime_ns=st.st_mtime_ns, uncompressed_size=_uncompressed_size(path)
                )
            )
        return entries

    def analyze(self, stats: Optional[CacheStats] = None) -> CacheMetrics:
        entries = self.scan()

        compressed = [e for e in entries if e.uncompressed_size is not None]
        compressed_bytes = sum(e.size for e in compressed)
        uncompressed_bytes = sum(e.uncompressed_size for e in compressed)
        compression_ratio = compressed_bytes / uncompressed_bytes if uncompressed_bytes else 1.0

        hits = stats.hits if stats is not None else 0
        misses = stats.misses if stats is not None else 0
        hit_rate = stats.hit_rate if stats is not None else 0.0
        average_access_time = stats.average_access_time if stats is not None else 0.0

        metrics = CacheMetrics(
            total_entries=len(entries),
            total_size=sum(e.size for e in entries),
            hits=hits,
            misses=misses,
            hit_rate=hit_rate,
            compression_ratio=compression_ratio,
            average_access_time=average_access_time,
            status=performance_status(hit_rate, self.target_hit_rate),
            timestamp=time.time(),
            target_hit_rate=self.target_hit_rate,
            meets_target=hit_rate >= self.target_hit_rate,
        )

        if metrics["meets_target"]:
            log.info(f"Cache hit rate ({hit_rate * 100:.1f}%) meets target ({self.target_hit_rate * 100:.0f}%)")
        else:
            log.warning(
                f"Cache hit rate ({hit_rate * 100:.1f}%) below target ({self.target_hit_rate * 100:.0f}%)"
            )
        return metrics

    def save_metrics(self, metrics: CacheMetrics, path: Optional[str] = None) -> Optional[str]:
        """Writes `metrics` as JSON. Returns the path written, or None if the write failed."""
        path = path or self.metrics_file or os.path.join(self.cache_dir, METRICS_FILE_NAME)
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(metrics, f, indent=2)
        except OSError as e:
            log.error(f"Failed to save metrics to {path}: {e}")
            return None
        log.info(f"Metrics saved to {path}")
        return path

    def prune(self, max_entries: int) -> List[str]:
        """Deletes the oldest files (by mtime) until at most `max_entries` remain."""
        if max_entries < 0:
            raise ValueError(f"max_entries must not be negative, got {max_entries}")

        entries = self.scan()
        if len(entries) <= max_entries:
            return []

        entries.sort(key=lambda e: (e.mtime_ns, e.path))
        removed = []
        for entry in entries[: len(entries) - max_entries]:
            try:
                os.unlink(entry.path)
            except FileNotFoundError:
                continue
            removed.append(entry.path)
        log.info(f"Pruned {len(removed)} cache entries from {self.cache_dir}")
        return removed
