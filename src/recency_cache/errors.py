class CacheError(Exception):
    pass


class CacheConfigurationError(CacheError, ValueError):
    """Raised when a cache is constructed with parameters it can never honor."""


class RemoteCacheError(CacheError):
    pass
