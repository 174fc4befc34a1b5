import threading
import unittest

from .errors import CacheConfigurationError
from .lru_cache import LRUCache
from .stats import CacheStats


class TestLRUCache(unittest.TestCase):
    def test_store_and_retrieve_values(self):
        """Test storing and retrieving values."""
        cache = LRUCache[str, int](capacity=3)
        cache.set("a", 1)
        self.assertEqual(cache.get("a"), 1)

    def test_missing_keys(self):
        """Test returning None (or the given default) for missing keys."""
        cache = LRUCache[str, int](capacity=3)
        self.assertIsNone(cache.get("missing"))
        self.assertEqual(cache.get("missing", -1), -1)
        self.assertEqual(cache.size(), 0)

    def test_respect_capacity(self):
        """Test evicting the least recently used entry when full."""
        cache = LRUCache[str, int](capacity=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        self.assertIsNone(cache.get("a"))
        self.assertEqual(cache.get("b"), 2)
        self.assertEqual(cache.get("c"), 3)

    def test_size_never_exceeds_capacity(self):
        cache = LRUCache[int, int](capacity=5)
        for i in range(100):
            cache.set(i, i)
            self.assertLessEqual(cache.size(), 5)
        self.assertEqual(cache.size(), 5)
        self.assertEqual(sorted(cache.keys()), [95, 96, 97, 98, 99])

    def test_refresh_items_on_get(self):
        """Test refreshing items on get."""
        cache = LRUCache[str, int](capacity=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")  # refresh "a"
        cache.set("c", 3)
        self.assertEqual(cache.get("a"), 1)
        self.assertIsNone(cache.get("b"))
        self.assertEqual(cache.get("c"), 3)

    def test_update_existing_keys(self):
        """Test updating existing keys."""
        cache = LRUCache[str, int](capacity=3)
        cache.set("a", 1)
        cache.set("a", 2)
        self.assertEqual(cache.get("a"), 2)
        self.assertEqual(cache.size(), 1)

    def test_overwrite_at_capacity_does_not_evict(self):
        cache = LRUCache[str, int](capacity=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        self.assertEqual(cache.size(), 2)
        self.assertEqual(cache.get("a"), 10)
        self.assertEqual(cache.get("b"), 2)

    def test_overwrite_refreshes_recency(self):
        cache = LRUCache[str, int](capacity=3)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)

        # Update "a" with new value
        cache.set("a", 11)

        # Add new item, should evict "b" not "a"
        cache.set("d", 4)

        self.assertEqual(cache.get("a"), 11)
        self.assertIsNone(cache.get("b"))
        self.assertEqual(cache.get("c"), 3)
        self.assertEqual(cache.get("d"), 4)

    def test_evicted_keys_stay_missing_until_set_again(self):
        cache = LRUCache[str, int](capacity=1)
        cache.set("a", 1)
        cache.set("b", 2)
        for _ in range(3):
            self.assertIsNone(cache.get("a"))
        self.assertIsNone(cache.get("never-set"))

        cache.set("a", 3)
        self.assertEqual(cache.get("a"), 3)
        self.assertIsNone(cache.get("b"))

    def test_capacity_three_scenario(self):
        cache = LRUCache[str, int](capacity=3)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        self.assertEqual(cache.size(), 3)

        cache.set("d", 4)
        self.assertIsNone(cache.get("a"))
        self.assertEqual(cache.get("d"), 4)
        self.assertEqual(cache.size(), 3)

        cache.get("b")
        cache.set("e", 5)
        self.assertEqual(sorted(cache.keys()), ["b", "d", "e"])
        self.assertIsNone(cache.get("c"))

    def test_evicts_entry_with_smallest_last_accessed(self):
        cache = LRUCache[str, int](capacity=4)
        for i, k in enumerate("wxyz"):
            cache.set(k, i)
        cache.get("w")
        cache.get("y")

        stamps = {k: cache.entry(k).last_accessed for k in cache.keys()}
        oldest = min(stamps, key=stamps.get)
        self.assertEqual(oldest, "x")

        cache.set("new", 99)
        self.assertNotIn("x", cache)
        self.assertEqual(sorted(cache.keys()), ["new", "w", "y", "z"])

    def test_last_accessed_is_strictly_increasing(self):
        cache = LRUCache[str, int](capacity=10)
        for k in "abcde":
            cache.set(k, 0)
        stamps = [cache.entry(k).last_accessed for k in "abcde"]
        self.assertEqual(len(set(stamps)), 5)
        self.assertEqual(stamps, sorted(stamps))

        before = cache.entry("a").last_accessed
        cache.get("a")
        self.assertGreater(cache.entry("a").last_accessed, max(stamps))
        self.assertGreater(cache.entry("a").last_accessed, before)

    def test_entry_and_contains_do_not_refresh(self):
        cache = LRUCache[str, int](capacity=2)
        cache.set("a", 1)
        cache.set("b", 2)
        self.assertTrue("a" in cache)
        self.assertEqual(cache.entry("a").value, 1)
        self.assertIsNone(cache.entry("missing"))

        cache.set("c", 3)
        self.assertNotIn("a", cache)

    def test_entry_returns_a_copy(self):
        cache = LRUCache[str, int](capacity=2)
        cache.set("a", 1)
        snapshot = cache.entry("a")
        snapshot.value = 100
        self.assertEqual(cache.get("a"), 1)

    def test_cache_with_capacity_one(self):
        cache = LRUCache[str, str](capacity=1)
        cache.set("a", "x")
        self.assertEqual(cache.get("a"), "x")

        cache.set("b", "y")
        self.assertIsNone(cache.get("a"))
        self.assertEqual(cache.get("b"), "y")
        self.assertEqual(len(cache), 1)

    def test_clear_all_items(self):
        """Test clearing all items."""
        cache = LRUCache[str, int](capacity=3)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.clear()
        self.assertIsNone(cache.get("a"))
        self.assertIsNone(cache.get("b"))
        self.assertEqual(cache.size(), 0)

    def test_rejects_invalid_capacity(self):
        for capacity in (0, -1, 2.5, "3", None, True):
            with self.subTest(capacity=capacity):
                with self.assertRaises(CacheConfigurationError):
                    LRUCache(capacity=capacity)

    def test_configuration_error_is_a_value_error(self):
        with self.assertRaises(ValueError):
            LRUCache(capacity=0)

    def test_records_stats(self):
        stats = CacheStats()
        cache = LRUCache[str, int](capacity=2, stats=stats)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.get("zzz")
        cache.set("c", 3)
        "a" in cache  # membership checks are not lookups

        self.assertEqual(stats.hits, 1)
        self.assertEqual(stats.misses, 1)
        self.assertEqual(stats.evictions, 1)
        self.assertEqual(stats.hit_rate, 0.5)

    def test_stats_without_lookups(self):
        stats = CacheStats()
        cache = LRUCache[str, int](capacity=1, stats=stats, record_lookups=False)
        cache.set("a", 1)
        cache.get("a")
        cache.get("zzz")
        cache.set("b", 2)

        self.assertEqual((stats.hits, stats.misses), (0, 0))
        self.assertEqual(stats.evictions, 1)

    def test_concurrent_sets_respect_capacity(self):
        cache = LRUCache[int, int](capacity=50)
        errors = []

        def worker(offset):
            try:
                for i in range(500):
                    cache.set(offset * 1000 + i, i)
                    cache.get(offset * 1000 + i // 2)
                    if cache.size() > 50:
                        errors.append(cache.size())
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(cache.size(), 50)
        self.assertEqual(len(set(cache.keys())), 50)


if __name__ == "__main__":
    unittest.main()
