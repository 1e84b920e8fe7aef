"""
Local storage implementations.

Filesystem and in-memory implementations that work without any external
services.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator

from cvtranslate.storage.base import CacheStorage, ContentStorage


# =============================================================================
# Local Filesystem Content Storage
# =============================================================================


class LocalContentStorage(ContentStorage):
    """Store content on local filesystem."""

    def __init__(self, base_path: str = "./data/translation-cache"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _key_to_path(self, key: str) -> Path:
        return self.base_path / key

    async def put(self, key: str, data: bytes) -> str:
        path = self._key_to_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write then rename so a crash mid-flush never leaves half a file
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_bytes(data)
        tmp_path.replace(path)
        return str(path)

    async def get(self, key: str) -> bytes:
        path = self._key_to_path(key)
        if not path.exists():
            raise FileNotFoundError(f"Content not found: {key}")
        return path.read_bytes()

    async def delete(self, key: str) -> bool:
        path = self._key_to_path(key)
        if path.exists():
            path.unlink()
            return True
        return False

    async def exists(self, key: str) -> bool:
        return self._key_to_path(key).exists()

    async def list_keys(self, prefix: str = "") -> AsyncIterator[str]:
        search_path = self.base_path / prefix if prefix else self.base_path
        if search_path.exists():
            for path in search_path.rglob("*"):
                if path.is_file() and not path.name.endswith(".tmp"):
                    yield str(path.relative_to(self.base_path))


# =============================================================================
# In-Memory Cache Storage
# =============================================================================


class InMemoryCacheStorage(CacheStorage):
    """In-memory cache with lazy expiry."""

    def __init__(self):
        self._cache: dict[str, tuple[Any, float | None]] = {}

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        expires_at = None
        if ttl:
            expires_at = datetime.now(timezone.utc).timestamp() + ttl
        self._cache[key] = (value, expires_at)

    async def get(self, key: str) -> Any | None:
        if key not in self._cache:
            return None

        value, expires_at = self._cache[key]
        if expires_at and datetime.now(timezone.utc).timestamp() > expires_at:
            del self._cache[key]
            return None

        return value

    async def delete(self, key: str) -> bool:
        if key in self._cache:
            del self._cache[key]
            return True
        return False

    async def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
