import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import CacheConfigurationError

CACHE_PATH = Path.home() / ".cache" / "recency-cache"
METRICS_FILE_NAME = "cache-metrics.json"

DEFAULT_MEMORY_MAX = 1000
DEFAULT_TARGET_HIT_RATE = 0.8

log = logging.getLogger(__name__)


def validate_hit_rate(rate: float) -> float:
    if not 0.0 <= rate <= 1.0:
        raise CacheConfigurationError(f"Target hit rate must be between 0 and 1, got {rate}")
    return rate


def _env(name: str, parse, default):
    if name not in os.environ:
        return default
    raw = os.environ[name]
    try:
        return parse(raw)
    except (ValueError, CacheConfigurationError):
        log.warning(f"Ignoring invalid value {raw!r} for {name}, using {default!r}")
        return default


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value < 1:
        raise ValueError(f"{value} is not positive")
    return value


def _flag(raw: str) -> bool:
    return bool(int(raw))


@dataclass
class CacheSettings:
    """
    Settings for the memory and disk cache tiers.

    Use `CacheSettings.from_env()` to read them from `RECENCY_CACHE_*` environment variables.
    """

    cache_dir: str = field(default_factory=lambda: str(CACHE_PATH))
    memory_max_size: int = DEFAULT_MEMORY_MAX
    disk_max_size: Optional[int] = None
    target_hit_rate: float = DEFAULT_TARGET_HIT_RATE
    log_warnings: bool = True

    def __post_init__(self):
        validate_hit_rate(self.target_hit_rate)

    @property
    def metrics_file(self) -> str:
        return os.path.join(self.cache_dir, METRICS_FILE_NAME)

    @classmethod
    def from_env(cls) -> "CacheSettings":
        return cls(
            cache_dir=os.environ.get("RECENCY_CACHE_DIR", str(CACHE_PATH)),
            memory_max_size=_env("RECENCY_CACHE_MEMORY_MAX", _positive_int, DEFAULT_MEMORY_MAX),
            disk_max_size=_env("RECENCY_CACHE_DISK_MAX", _positive_int, None),
            target_hit_rate=_env(
                "RECENCY_CACHE_TARGET_HIT_RATE", lambda raw: validate_hit_rate(float(raw)), DEFAULT_TARGET_HIT_RATE
            ),
            log_warnings=_env("RECENCY_CACHE_LOG_WARNINGS", _flag, True),
        )
