"""
Whole-document translation cache.

Entries are keyed by a rolling hash of the serialized document plus the
target language, and expire after a retention window (7 days by default).
Expired entries are dropped lazily, on lookup or when loading from storage.

With a ContentStorage attached the cache survives restarts:

    index.json            {key: {timestamp, language, fingerprint, location}}
    entries/<key>.json    translated document

Inserts only mark the cache dirty. `flush()` writes, and `CacheFlusher`
calls it on a schedule and once more on shutdown.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Callable

from cvtranslate.core.models import CacheEntry, CacheStats
from cvtranslate.core.utils import serialize_document, utc_now
from cvtranslate.i18n.languages import normalize_language_code
from cvtranslate.storage.base import ContentStorage


logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 7 * 24 * 60 * 60

INDEX_KEY = "index.json"
ENTRY_PREFIX = "entries"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def rolling_hash(text: str) -> str:
    """
    32-bit polynomial rolling hash (h = h * 31 + c), rendered in base 36.

    Stable across processes, unlike the built-in `hash()`.
    """
    h = 0
    for char in text:
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 1 << 32
    h = abs(h)

    if h == 0:
        return "0"
    digits = []
    while h:
        h, rem = divmod(h, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def _key_for(content: str, language: str) -> str:
    return f"{language}:{rolling_hash(content + language)}"


def make_cache_key(document: Any, target_language: str) -> str:
    return _key_for(serialize_document(document), normalize_language_code(target_language))


def content_fingerprint(content: str) -> str:
    """
    Length plus a hash of the source alone.

    Stored next to each entry so a key collision between two documents reads
    as a miss instead of returning the other document's translation.
    """
    return f"{len(content)}-{rolling_hash(content)}"


class DocumentTranslationCache:
    """
    Content-addressed store of translated documents.

    Usage:
        cache = DocumentTranslationCache(storage=LocalContentStorage("./data/cache"))
        await cache.load()

        cached = await cache.get(cv, "Spanish")
        if cached is None:
            translated = ...
            await cache.put(cv, "Spanish", translated)
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        storage: ContentStorage | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ttl_seconds = ttl_seconds
        self.storage = storage
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._dirty: set[str] = set()
        self._removed: set[str] = set()

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def _entry_location(key: str) -> str:
        return f"{ENTRY_PREFIX}/{key.replace(':', '_')}.json"

    # -------------------------------------------------------------------------
    # Lookup / insert
    # -------------------------------------------------------------------------

    async def get(self, document: Any, target_language: str) -> Any | None:
        """Return the cached translation, or None on a miss or an expired entry."""
        content = serialize_document(document)
        key = _key_for(content, normalize_language_code(target_language))
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self.clock(), self.ttl_seconds):
            self._forget(key)
            logger.debug("Cache entry %s expired", key)
            return None

        if entry.fingerprint != content_fingerprint(content):
            logger.warning("Cache key %s belongs to a different document, ignoring entry", key)
            return None

        logger.info("Using cached translation for %s", entry.language)
        return entry.payload

    async def put(self, document: Any, target_language: str, translated: Any) -> str:
        """Store a translation. Last write for a key wins."""
        content = serialize_document(document)
        language = normalize_language_code(target_language)
        key = _key_for(content, language)
        self._entries[key] = CacheEntry(
            key=key,
            payload=translated,
            language=language,
            fingerprint=content_fingerprint(content),
            created_at=self.clock(),
        )
        self._dirty.add(key)
        self._removed.discard(key)
        logger.info("Cached translation for %s", target_language)
        return key

    def _forget(self, key: str) -> None:
        self._entries.pop(key, None)
        self._dirty.discard(key)
        self._removed.add(key)

    def _drop_expired(self) -> None:
        now = self.clock()
        for key, entry in list(self._entries.items()):
            if entry.is_expired(now, self.ttl_seconds):
                self._forget(key)

    async def clear(self) -> None:
        """Drop every entry, in memory and in storage."""
        self._entries.clear()
        self._dirty.clear()
        self._removed.clear()

        if self.storage:
            stored_keys = [k async for k in self.storage.list_keys()]
            for stored in stored_keys:
                await self.storage.delete(stored)
        logger.info("Translation cache cleared")

    def stats(self) -> CacheStats:
        self._drop_expired()
        per_language: dict[str, int] = {}
        size = 0
        for entry in self._entries.values():
            per_language[entry.language] = per_language.get(entry.language, 0) + 1
            size += len(serialize_document(entry.payload).encode("utf-8"))

        return CacheStats(
            count=len(self._entries),
            languages=sorted(per_language),
            per_language=per_language,
            total_size_bytes=size,
        )

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    async def load(self) -> int:
        """Load unexpired entries from storage. Returns the number loaded."""
        if not self.storage or not await self.storage.exists(INDEX_KEY):
            return 0

        try:
            index = json.loads(await self.storage.get(INDEX_KEY))
        except (OSError, ValueError) as e:
            logger.warning("Unreadable cache index, starting fresh: %s", e)
            return 0

        now = self.clock()
        loaded = 0
        for key, meta in index.items():
            created_at = datetime.fromisoformat(meta["timestamp"])
            location = meta.get("location") or self._entry_location(key)

            if (now - created_at).total_seconds() > self.ttl_seconds:
                self._removed.add(key)
                continue

            try:
                payload = json.loads(await self.storage.get(location))
            except (OSError, ValueError) as e:
                logger.warning("Skipping cache entry %s: %s", key, e)
                self._removed.add(key)
                continue

            self._entries[key] = CacheEntry(
                key=key,
                payload=payload,
                language=meta["language"],
                fingerprint=meta.get("fingerprint", ""),
                created_at=created_at,
            )
            loaded += 1

        if self._removed:
            await self.flush()

        logger.info("Loaded %d cached translations", loaded)
        return loaded

    async def flush(self) -> int:
        """Write dirty entries and the index. Returns the number of payloads written."""
        self._drop_expired()
        if not self.storage or not (self._dirty or self._removed):
            return 0

        written = 0
        for key in list(self._dirty):
            entry = self._entries.get(key)
            if entry is None:
                continue
            await self.storage.put(
                self._entry_location(key),
                serialize_document(entry.payload).encode("utf-8"),
            )
            written += 1

        for key in self._removed:
            await self.storage.delete(self._entry_location(key))

        index = {
            key: {
                "timestamp": entry.created_at.isoformat(),
                "language": entry.language,
                "fingerprint": entry.fingerprint,
                "location": self._entry_location(key),
            }
            for key, entry in self._entries.items()
        }
        await self.storage.put(INDEX_KEY, json.dumps(index, indent=2).encode("utf-8"))

        self._dirty.clear()
        self._removed.clear()
        logger.debug("Flushed %d cache entries", written)
        return written


class CacheFlusher:
    """
    Periodic cache flush as an explicit background task.

    Usage:
        flusher = CacheFlusher(cache, interval=300)
        flusher.start()
        ...
        await flusher.stop()  # cancels the loop, then flushes once more
    """

    def __init__(self, cache: DocumentTranslationCache, interval: float = 300.0):
        self.cache = cache
        self.interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="translation-cache-flusher")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.cache.flush()
            except OSError as e:
                logger.error("Failed to save translation cache: %s", e)

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self.cache.flush()
