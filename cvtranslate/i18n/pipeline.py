"""
Document translation pipeline.

One pipeline serves both delivery modes and shares the chunker, retry
orchestration, healer and cache between them:

    document -> split_document -> segments
             -> scheduler (bulk or stream) -> with_retry -> invoker
             -> opener + joined outputs + closer -> heal -> parse
             -> structure check -> cache

Usage:
    translator = DocumentTranslator(GeminiTextService(), cache=cache)

    # One reply
    cv_es = await translator.translate(cv, "Spanish")

    # Ordered progress events
    async for event in translator.stream(cv, "Spanish"):
        ...
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable

from cvtranslate.config import Settings, get_settings
from cvtranslate.core.errors import (
    InvalidRequestError,
    MalformedOutputError,
    TranslationCancelledError,
)
from cvtranslate.core.models import ProgressEvent, ProgressKind, SegmentState
from cvtranslate.core.utils import serialize_document
from cvtranslate.i18n.cache import DocumentTranslationCache
from cvtranslate.i18n.chunker import SplitDocument, split_document
from cvtranslate.i18n.healer import parse_healed
from cvtranslate.i18n.invoker import TranslationInvoker
from cvtranslate.i18n.retry import RetryPolicy, with_retry
from cvtranslate.i18n.scheduler import stream_segments, translate_bulk
from cvtranslate.i18n.structure import ensure_same_shape
from cvtranslate.services.ai.client import TextService
from cvtranslate.storage.local import InMemoryCacheStorage


logger = logging.getLogger(__name__)


def validate_request(document: Any, target_language: str | None) -> None:
    """Reject incomplete requests before anything is sent upstream."""
    if not target_language or not str(target_language).strip():
        raise InvalidRequestError("targetLang and data required")
    if document is None:
        raise InvalidRequestError("targetLang and data required")


class DocumentTranslator:
    """
    Translates structured documents without changing their shape.

    Bulk mode (`translate`) degrades per segment: a segment that cannot be
    translated, or whose output would break the document, keeps its original
    text. Stream mode (`stream`) has already delivered earlier chunks when a
    later one fails, so it stops with an error instead.
    """

    def __init__(
        self,
        service: TextService,
        cache: DocumentTranslationCache | None = None,
        settings: Settings | None = None,
        invoker: TranslationInvoker | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        settings = settings or get_settings()
        self.cache = cache
        self.chunk_size = settings.chunk_size
        self.chunk_strategy = settings.chunk_strategy
        self.workers = settings.bulk_workers
        self.stream_pause = settings.stream_pause
        self.policy = RetryPolicy.from_settings(settings)
        self.invoker = invoker or TranslationInvoker(
            service,
            segment_cache=InMemoryCacheStorage(),
            segment_cache_ttl=settings.segment_cache_ttl_seconds,
        )
        self._sleep = sleep

    # -------------------------------------------------------------------------
    # Units
    # -------------------------------------------------------------------------

    async def _translate_segment(
        self, text: str, target_language: str, cancel: asyncio.Event | None = None
    ) -> str:
        return await with_retry(
            lambda tier: self.invoker.invoke(text, target_language, tier),
            self.policy,
            sleep=self._sleep,
            cancel=cancel,
        )

    async def translate_text(
        self, text: str, target_language: str, cancel: asyncio.Event | None = None
    ) -> str:
        """Translate one plain-text field (field-by-field mode)."""
        validate_request(text, target_language)
        return await with_retry(
            lambda tier: self.invoker.invoke_text(text, target_language, tier),
            self.policy,
            sleep=self._sleep,
            cancel=cancel,
        )

    # -------------------------------------------------------------------------
    # Reassembly
    # -------------------------------------------------------------------------

    def _reassemble(self, document: Any, split: SplitDocument, parts: list[str]) -> Any:
        result = parse_healed(split.assemble(parts))
        ensure_same_shape(document, result)
        return result

    def _isolate_bad_segments(
        self, document: Any, split: SplitDocument, parts: list[str]
    ) -> list[str]:
        """Revert each segment whose output breaks the document on its own."""
        raw = [s.raw_text for s in split.segments]
        repaired = list(parts)

        for i, part in enumerate(parts):
            if part == raw[i]:
                continue
            trial = raw[:i] + [part] + raw[i + 1:]
            try:
                self._reassemble(document, split, trial)
            except MalformedOutputError:
                logger.warning("Chunk %d produced unusable output, keeping original text", i)
                split.segments[i].state = SegmentState.FAILED
                repaired[i] = raw[i]

        return repaired

    # -------------------------------------------------------------------------
    # Bulk mode
    # -------------------------------------------------------------------------

    async def translate(self, document: Any, target_language: str) -> Any:
        """
        Translate a document and return it in one piece.

        Raises:
            InvalidRequestError: missing document or target language
            MalformedOutputError: the reassembled document could not be parsed
            UpstreamError: only for plain-string documents
        """
        validate_request(document, target_language)

        if self.cache:
            cached = await self.cache.get(document, target_language)
            if cached is not None:
                return cached

        if isinstance(document, str):
            result = await self.translate_text(document, target_language)
        else:
            split = split_document(document, self.chunk_size, self.chunk_strategy)
            if not split.segments:
                return document

            logger.info(
                "Translating %d chunks to %s with %d workers",
                len(split.segments), target_language, self.workers,
            )
            parts = await translate_bulk(
                split.segments,
                lambda text: self._translate_segment(text, target_language),
                self.workers,
            )

            try:
                result = self._reassemble(document, split, parts)
            except MalformedOutputError:
                parts = self._isolate_bad_segments(document, split, parts)
                result = self._reassemble(document, split, parts)

        if self.cache:
            await self.cache.put(document, target_language, result)
        return result

    # -------------------------------------------------------------------------
    # Stream mode
    # -------------------------------------------------------------------------

    async def stream(
        self,
        document: Any,
        target_language: str,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[ProgressEvent]:
        """
        Translate a document segment by segment, yielding progress events.

        Chunk texts concatenate to the serialized translated document. The
        final event is `done` (carrying the parsed document) or `error`.
        Setting `cancel` stops the stream without a final event.
        """
        try:
            validate_request(document, target_language)
        except InvalidRequestError as e:
            yield ProgressEvent.error(str(e))
            return

        if self.cache:
            cached = await self.cache.get(document, target_language)
            if cached is not None:
                yield ProgressEvent.start(1)
                yield ProgressEvent.chunk(0, serialize_document(cached), 1, 1)
                yield ProgressEvent.done(cached)
                return

        if isinstance(document, str):
            yield ProgressEvent.start(1)
            try:
                result = await self.translate_text(document, target_language, cancel)
            except TranslationCancelledError:
                logger.info("Stream for %s cancelled, discarding partial result", target_language)
                return
            except Exception as e:
                logger.error("Stream error: %s", e)
                yield ProgressEvent.error(f"Translation failed at chunk 0: {e}")
                return
            yield ProgressEvent.chunk(0, json.dumps(result, ensure_ascii=False), 1, 1)
        else:
            split = split_document(document, self.chunk_size, self.chunk_strategy)
            if not split.segments:
                yield ProgressEvent.start(0)
                yield ProgressEvent.done(document)
                return

            last = len(split.segments) - 1
            async for event in stream_segments(
                split.segments,
                lambda text: self._translate_segment(text, target_language, cancel),
                pause=self.stream_pause,
                cancel=cancel,
            ):
                if event.kind == ProgressKind.CHUNK:
                    if event.index == 0:
                        event.text = split.opener + event.text
                    else:
                        event.text = split.separator + event.text
                    if event.index == last:
                        event.text = event.text + split.closer
                yield event
                if event.kind == ProgressKind.ERROR:
                    return

            cancelled = cancel is not None and cancel.is_set()
            if cancelled or any(s.state != SegmentState.DONE for s in split.segments):
                logger.info("Stream for %s cancelled, discarding partial result", target_language)
                return

            try:
                result = self._reassemble(
                    document, split, [s.output for s in split.segments]
                )
            except MalformedOutputError as e:
                logger.error("Failed to validate final JSON: %s", e)
                yield ProgressEvent.error("Failed to validate final JSON")
                return

        if self.cache:
            await self.cache.put(document, target_language, result)
        yield ProgressEvent.done(result)
