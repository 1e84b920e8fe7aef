"""
Storage abstraction layer.

Persistence goes through these interfaces so the translation cache can move
from the local filesystem to object storage (and the sub-segment cache to
Redis) without touching pipeline code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator


# =============================================================================
# Storage Interfaces
# =============================================================================


class ContentStorage(ABC):
    """
    Storage for opaque payloads addressed by key.

    Local Implementation: Filesystem
    """

    @abstractmethod
    async def put(self, key: str, data: bytes) -> str:
        """Store content, return its location."""
        pass

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Retrieve content by key. Raises FileNotFoundError when absent."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete content."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if content exists."""
        pass

    @abstractmethod
    async def list_keys(self, prefix: str = "") -> AsyncIterator[str]:
        """List keys with optional prefix."""
        pass


class CacheStorage(ABC):
    """
    Fast key-value cache with per-key expiry.

    Local Implementation: In-memory dict
    """

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Set a value with optional TTL in seconds."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Get a value."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Drop every key."""
        pass
