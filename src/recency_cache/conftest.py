import os

import pytest

ISOLATED_ENV_VARS = (
    "RECENCY_CACHE_DIR",
    "RECENCY_CACHE_MEMORY_MAX",
    "RECENCY_CACHE_DISK_MAX",
    "RECENCY_CACHE_TARGET_HIT_RATE",
    "RECENCY_CACHE_LOG_WARNINGS",
    "TURBO_TEAM",
    "TURBO_TOKEN",
    "TURBO_REMOTE_CACHE_SIGNATURE_KEY",
    "TURBO_API",
)


@pytest.fixture(autouse=True)
def isolate_cache_environment():
    """
    Temporarily clear the cache and Turborepo environment variables.

    This keeps a developer's local TURBO_TOKEN or RECENCY_CACHE_DIR from leaking into
    tests, which would otherwise hit real remote caches or real cache directories.
    """
    original = {name: os.environ.get(name) for name in ISOLATED_ENV_VARS}
    for name in ISOLATED_ENV_VARS:
        os.environ.pop(name, None)

    try:
        yield
    finally:
        for name, value in original.items():
            if value is not None:
                os.environ[name] = value
            else:
                os.environ.pop(name, None)
