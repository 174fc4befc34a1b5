"""
Content-aware hashing helpers for building cache keys.

Hashes depend only on content: file names, modification times and permissions are
never mixed in, so touching a file without changing it keeps its cache key stable.
"""

import hashlib
import os
import re
from typing import Union

import slugify

DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_KEY_HASH_LENGTH = 8

# `<slug>-<hex hash prefix>`, as built by `cache_key`.
_CACHE_KEY = re.compile(r"[a-z0-9]+(?:-[a-z0-9]+)*-([0-9a-f]+)")


def _to_bytes(data: Union[bytes, str]) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def content_hash(data: Union[bytes, str]) -> str:
    """Returns the SHA-256 hex digest of `data`. Strings are hashed as UTF-8."""
    return hashlib.sha256(_to_bytes(data)).hexdigest()


def composite_hash(*factors: Union[bytes, str]) -> str:
    """
    Hashes several inputs (e.g. source content, task name, environment) into one digest.

    Each factor is length-prefixed, so ("ab", "c") and ("a", "bc") hash differently.
    """
    h = hashlib.sha256()
    for factor in factors:
        b = _to_bytes(factor)
        h.update(len(b).to_bytes(8, "big"))
        h.update(b)
    return h.hexdigest()


def file_hash(path: Union[str, os.PathLike], chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Hashes a file's bytes incrementally. Matches `content_hash` of the same content."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            h.update(chunk)
    return h.hexdigest()


def task_slug(task: str) -> str:
    """Normalizes a task name for use in keys and paths: `format:check` -> `format-check`."""
    slug = slugify.slugify(task, lowercase=True)
    if not slug:
        raise ValueError(f"Task name {task!r} does not contain any usable characters")
    return slug


def cache_key(task: str, digest: str, length: int = DEFAULT_KEY_HASH_LENGTH) -> str:
    """Builds a short `<task>-<hash prefix>` key, e.g. `format-1a2b3c4d`."""
    if not digest:
        raise ValueError("Digest must be provided")
    return f"{task_slug(task)}-{digest[:length]}"


def validate_cache_key(key: str, content: Union[bytes, str]) -> bool:
    """Checks that `key` has the `<slug>-<hash>` shape and its hash suffix matches `content`."""
    match = _CACHE_KEY.fullmatch(key)
    if match is None:
        return False
    return content_hash(content).startswith(match.group(1))
