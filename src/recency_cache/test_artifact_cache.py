import shutil
import tempfile
import unittest

from . import artifact_cache, disk_cache, lru_cache
from .config import CacheSettings
from .stats import CacheStats


class TestArtifactCache(unittest.TestCase):
    def setUp(self):
        self.cache_dir = tempfile.mkdtemp()
        self.memory = lru_cache.LRUCache[str, dict](capacity=2)
        self.disk = disk_cache.DiskCache[dict](cache_dir=self.cache_dir, max_size=10)
        self.cache = artifact_cache.ArtifactCache(self.memory, self.disk)
        self.artifact = {"outputs": ["dist/index.js"], "log": "built in 1.2s"}

    def tearDown(self):
        shutil.rmtree(self.cache_dir, ignore_errors=True)

    def test_store_and_retrieve(self):
        self.cache.set("build", "abc123", self.artifact)
        self.assertEqual(self.cache.get("build", "abc123"), self.artifact)

    def test_write_through_to_both_layers(self):
        self.cache.set("build", "abc123", self.artifact)
        self.assertEqual(self.memory.get("build:abc123"), self.artifact)
        self.assertEqual(self.disk.get("build:abc123"), self.artifact)

    def test_task_names_are_slugified(self):
        self.cache.set("format:check", "abc123", self.artifact)
        self.assertIn("format-check:abc123", self.memory)
        self.assertEqual(self.cache.get("format:check", "abc123"), self.artifact)

    def test_falls_back_to_disk_and_promotes(self):
        self.cache.set("build", "abc123", self.artifact)
        self.memory.clear()

        self.assertEqual(self.cache.get("build", "abc123"), self.artifact)
        self.assertIn("build:abc123", self.memory)

    def test_memory_eviction_is_served_from_disk(self):
        for i in range(3):
            self.cache.set("lint", f"hash{i}", {"value": i})

        self.assertNotIn("lint:hash0", self.memory)
        self.assertEqual(self.cache.get("lint", "hash0"), {"value": 0})

    def test_miss_in_both_layers(self):
        self.assertIsNone(self.cache.get("build", "missing"))

    def test_memory_only(self):
        cache = artifact_cache.ArtifactCache(lru_cache.LRUCache[str, dict](capacity=1))
        cache.set("test", "h1", {"value": 1})
        cache.set("test", "h2", {"value": 2})
        self.assertIsNone(cache.get("test", "h1"))
        self.assertEqual(cache.get("test", "h2"), {"value": 2})

    def test_different_hashes_are_different_entries(self):
        self.cache.set("build", "h1", {"value": 1})
        self.cache.set("build", "h2", {"value": 2})
        self.assertEqual(self.cache.get("build", "h1"), {"value": 1})
        self.assertEqual(self.cache.get("build", "h2"), {"value": 2})

    def test_requires_task_and_hash(self):
        with self.assertRaises(ValueError):
            self.cache.get("", "abc")
        with self.assertRaises(ValueError):
            self.cache.set("build", "", {})

    def test_from_settings(self):
        settings = CacheSettings(cache_dir=self.cache_dir, memory_max_size=5, disk_max_size=7)
        stats = CacheStats()
        cache = artifact_cache.ArtifactCache.from_settings(settings, stats=stats)

        self.assertEqual(cache.memory_cache.capacity, 5)
        self.assertEqual(cache.disk_cache.max_size, 7)
        self.assertEqual(cache.disk_cache.cache_dir, self.cache_dir)

        cache.set("build", "h", {"value": 1})
        cache.get("build", "h")
        cache.get("build", "nope")
        self.assertEqual(stats.hits, 1)
        self.assertEqual(stats.misses, 1)

    def test_disk_hit_counts_as_one_hit(self):
        settings = CacheSettings(cache_dir=self.cache_dir, memory_max_size=1, disk_max_size=1)
        stats = CacheStats()
        cache = artifact_cache.ArtifactCache.from_settings(settings, stats=stats)

        cache.disk_cache.set("build:abc", {"value": 1})
        self.assertEqual(cache.get("build", "abc"), {"value": 1})
        self.assertEqual((stats.hits, stats.misses), (1, 0))

        self.assertIsNone(cache.get("build", "missing"))
        self.assertEqual((stats.hits, stats.misses), (1, 1))

    def test_stats_cover_writes_and_evictions_of_both_layers(self):
        settings = CacheSettings(cache_dir=self.cache_dir, memory_max_size=1, disk_max_size=1)
        stats = CacheStats()
        cache = artifact_cache.ArtifactCache.from_settings(settings, stats=stats)

        cache.set("build", "h1", {"value": 1})
        cache.set("build", "h2", {"value": 2})

        self.assertEqual(stats.writes, 2)
        self.assertGreater(stats.bytes_written, 0)
        # One eviction from memory and one from disk.
        self.assertEqual(stats.evictions, 2)
        self.assertEqual((stats.hits, stats.misses), (0, 0))


if __name__ == "__main__":
    unittest.main()
