"""
Storage abstractions.

- ContentStorage → translation cache index and payloads
- CacheStorage → short-lived sub-segment cache
"""

from cvtranslate.storage.base import (
    ContentStorage,
    CacheStorage,
)
from cvtranslate.storage.local import (
    LocalContentStorage,
    InMemoryCacheStorage,
)

__all__ = [
    "ContentStorage",
    "CacheStorage",
    "LocalContentStorage",
    "InMemoryCacheStorage",
]
