"""
Bounded recency caches for build artifacts.

`recency_cache` provides a thread-safe in-memory LRU cache with a fixed capacity, a
gzip-compressed disk tier with mtime-based LRU eviction, a two-layer artifact cache
keyed by task name and content hash, and a client for Turborepo-compatible remote
artifact caches.

### Quickstart

```python
from recency_cache import LRUCache

cache = LRUCache[str, int](capacity=3)
cache.set("a", 1)
cache.get("a")        # 1, and "a" is now the most recently used entry
cache.get("missing")  # None
```

The `recency-cache` command line tool reports on and prunes cache directories:

```bash
recency-cache stats ~/.cache/recency-cache
```
"""

from .artifact_cache import ArtifactCache
from .config import CacheSettings
from .disk_cache import DiskCache
from .errors import CacheConfigurationError, CacheError, RemoteCacheError
from .hashing import cache_key, composite_hash, content_hash, file_hash, validate_cache_key
from .lru_cache import CacheEntry, LRUCache
from .monitor import CacheMonitor, performance_status, recommendations
from .remote_cache import CacheOperationResult, RemoteCacheClient, RemoteCacheConfig, create_remote_cache_client
from .stats import CacheStats
from .version import VERSION as __version__
