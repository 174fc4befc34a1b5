"""
A client for Turborepo-compatible remote artifact caches.

Artifacts are opaque byte blobs addressed by content hash. Uploads can be signed with
an HMAC-SHA256 key; when a key is configured, downloads are only accepted if their
`x-artifact-tag` header verifies against it.

Configuration falls back to the environment variables the `turbo` binary itself reads:
`TURBO_TEAM`, `TURBO_TOKEN`, `TURBO_REMOTE_CACHE_SIGNATURE_KEY` and `TURBO_API`.
"""

import concurrent.futures
import dataclasses
import hmac
import logging
import os
import time
from dataclasses import dataclass
from hashlib import sha256
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import RemoteCacheError
from .util import _urljoin

DEFAULT_API_URL = "https://api.vercel.com"
ARTIFACTS_PATH = "v8/artifacts"
ARTIFACT_TAG_HEADER = "x-artifact-tag"

I = TypeVar("I")
R = TypeVar("R")

log = logging.getLogger(__name__)


def _default_endpoint() -> str:
    return _urljoin(os.environ.get("TURBO_API", DEFAULT_API_URL), ARTIFACTS_PATH)


@dataclass
class RemoteCacheConfig:
    team: str = dataclasses.field(default_factory=lambda: os.environ.get("TURBO_TEAM", ""))
    token: str = dataclasses.field(default_factory=lambda: os.environ.get("TURBO_TOKEN", ""))
    signature_key: str = dataclasses.field(
        default_factory=lambda: os.environ.get("TURBO_REMOTE_CACHE_SIGNATURE_KEY", "")
    )
    endpoint: str = dataclasses.field(default_factory=_default_endpoint)
    timeout: float = 30.0
    """Per-request timeout, in seconds"""

    parallel: bool = True
    max_concurrency: int = 4

    @property
    def has_token(self) -> bool:
        return bool(self.token and self.token.strip())


@dataclass
class CacheOperationResult:
    success: bool
    duration: float
    bytes_transferred: int = 0
    error: Optional[str] = None
    cache_hit: Optional[bool] = None
    data: Optional[bytes] = None


class RemoteCacheClient:
    def __init__(self, config: Optional[RemoteCacheConfig] = None, adapter: Optional[HTTPAdapter] = None):
        self.config = config if config is not None else RemoteCacheConfig()
        self.adapter = adapter
        self._reset(total=3, backoff_factor=0.5, status_forcelist=(502, 503, 504))

    def _reset(self, **retry_kwargs):
        self.session = requests.Session()

        adapter = self.adapter
        if adapter is None:
            retry = Retry(**retry_kwargs)
            adapter = HTTPAdapter(max_retries=retry)

        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        if self.config.has_token:
            self.session.headers.update({"Authorization": f"Bearer {self.config.token.strip()}"})

    def close(self) -> None:
        self.session.close()

    def _artifact_url(self, hash: str) -> str:
        if not hash:
            raise ValueError("Artifact hash must be provided")
        return _urljoin(self.config.endpoint, hash)

    def _params(self):
        return {"teamId": self.config.team} if self.config.team else None

    def authenticate(self) -> bool:
        """
        Checks that the configured token is accepted by the remote cache.

        Raises:
            RemoteCacheError: If no token is configured.
        """
        if not self.config.has_token:
            raise RemoteCacheError("No authentication token provided")

        try:
            resp = self.session.get(
                _urljoin(self.config.endpoint, "status"), params=self._params(), timeout=self.config.timeout
            )
            return resp.ok
        except requests.RequestException as e:
            log.warning(f"Remote cache authentication failed: {e}")
            return False

    def upload_artifact(self, hash: str, data: bytes) -> CacheOperationResult:
        start = time.perf_counter()
        if not self.config.has_token:
            return CacheOperationResult(success=False, error="Authentication required", duration=0.0)

        headers = {"Content-Type": "application/octet-stream"}
        if self.config.signature_key:
            headers[ARTIFACT_TAG_HEADER] = self.sign_artifact(data, self.config.signature_key)

        try:
            resp = self.session.put(
                self._artifact_url(hash),
                data=data,
                headers=headers,
                params=self._params(),
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            log.warning(f"Failed to upload artifact {hash}: {e}")
            return CacheOperationResult(success=False, error=str(e), duration=time.perf_counter() - start)

        duration = time.perf_counter() - start
        if not resp.ok:
            return CacheOperationResult(
                success=False, error=f"Upload failed with status {resp.status_code}", duration=duration
            )
        log.debug("Uploaded artifact %s (%d bytes)", hash, len(data))
        return CacheOperationResult(success=True, duration=duration, bytes_transferred=len(data))

    def download_artifact(self, hash: str) -> CacheOperationResult:
        start = time.perf_counter()
        if not self.config.has_token:
            return CacheOperationResult(success=False, error="Authentication required", duration=0.0, cache_hit=False)

        try:
            resp = self.session.get(self._artifact_url(hash), params=self._params(), timeout=self.config.timeout)
        except requests.RequestException as e:
            log.warning(f"Failed to download artifact {hash}: {e}")
            return CacheOperationResult(
                success=False, error=str(e), duration=time.perf_counter() - start, cache_hit=False
            )

        duration = time.perf_counter() - start
        if resp.status_code == 404:
            return CacheOperationResult(success=False, error="Cache miss", duration=duration, cache_hit=False)
        if not resp.ok:
            return CacheOperationResult(
                success=False,
                error=f"Download failed with status {resp.status_code}",
                duration=duration,
                cache_hit=False,
            )

        data = resp.content
        if self.config.signature_key:
            tag = resp.headers.get(ARTIFACT_TAG_HEADER)
            if not tag or not self.verify_artifact(data, tag):
                log.warning(f"Rejecting artifact {hash}: signature verification failed")
                return CacheOperationResult(
                    success=False, error="Signature verification failed", duration=duration, cache_hit=False
                )

        return CacheOperationResult(
            success=True, duration=duration, bytes_transferred=len(data), cache_hit=True, data=data
        )

    def artifact_exists(self, hash: str) -> bool:
        if not self.config.has_token:
            return False

        try:
            resp = self.session.head(self._artifact_url(hash), params=self._params(), timeout=self.config.timeout)
        except requests.RequestException as e:
            log.warning(f"Failed to check artifact {hash}: {e}")
            return False
        return resp.ok

    def upload_artifacts(self, artifacts: Sequence[Tuple[str, bytes]]) -> List[CacheOperationResult]:
        """Uploads `(hash, data)` pairs. Results are returned in input order."""
        return self._execute(list(artifacts), lambda item: self.upload_artifact(*item))

    def download_artifacts(self, hashes: Sequence[str]) -> List[CacheOperationResult]:
        """Downloads artifacts by hash. Results are returned in input order."""
        return self._execute(list(hashes), self.download_artifact)

    def _execute(self, items: List[I], operation: Callable[[I], R]) -> List[R]:
        if not self.config.parallel:
            return [operation(item) for item in items]

        batch_size = max(1, self.config.max_concurrency)
        results: List[R] = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=batch_size) as executor:
            for i in range(0, len(items), batch_size):
                results.extend(executor.map(operation, items[i : i + batch_size]))
        return results

    @staticmethod
    def sign_artifact(data: bytes, key: str) -> str:
        return hmac.new(key.encode("utf-8"), data, sha256).hexdigest()

    def verify_artifact(self, data: bytes, signature: str, key: Optional[str] = None) -> bool:
        signature_key = key or self.config.signature_key
        if not signature_key:
            return False
        return hmac.compare_digest(self.sign_artifact(data, signature_key), signature)


def create_remote_cache_client(config: Optional[RemoteCacheConfig] = None) -> RemoteCacheClient:
    """Creates a remote cache client, filling unset configuration from the environment."""
    return RemoteCacheClient(config)
