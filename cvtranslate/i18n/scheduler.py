"""
Running segments through a translate function, in two delivery modes.

Streamed: strictly in order, one call in flight, a progress event after each
segment and a short pause for a readable pace. The first failure ends the
stream with an error event.

Bulk: a fixed pool of workers claims segments from a shared queue and writes
each result at the segment's own index. A failed segment keeps its original
text and the batch carries on.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable

from cvtranslate.core.models import ProgressEvent, Segment, SegmentState


logger = logging.getLogger(__name__)

TranslateOne = Callable[[str], Awaitable[str]]


async def stream_segments(
    segments: list[Segment],
    translate_one: TranslateOne,
    pause: float = 0.05,
    cancel: asyncio.Event | None = None,
) -> AsyncIterator[ProgressEvent]:
    """
    Translate segments one at a time, yielding start/chunk/error events.

    Yields no `done` event; the caller emits it once the joined result has
    been validated. When `cancel` is set no further calls are issued and the
    generator simply stops, even if the segment in flight then fails.
    """
    total = len(segments)
    yield ProgressEvent.start(total)

    for completed, segment in enumerate(segments, start=1):
        if cancel is not None and cancel.is_set():
            logger.info("Stream cancelled before segment %d/%d", segment.index, total)
            return

        segment.state = SegmentState.IN_FLIGHT
        try:
            segment.translated_text = await translate_one(segment.raw_text)
        except Exception as e:
            segment.state = SegmentState.FAILED
            if cancel is not None and cancel.is_set():
                logger.info("Stream cancelled during segment %d/%d", segment.index, total)
                return
            logger.error("Error on chunk %d: %s", segment.index, e)
            yield ProgressEvent.error(f"Translation failed at chunk {segment.index}: {e}")
            return

        segment.state = SegmentState.DONE
        yield ProgressEvent.chunk(segment.index, segment.translated_text, completed, total)

        if pause > 0:
            await asyncio.sleep(pause)


async def translate_bulk(
    segments: list[Segment],
    translate_one: TranslateOne,
    workers: int = 5,
) -> list[str]:
    """
    Translate segments concurrently and return outputs in original order.

    Any exception from `translate_one` is absorbed per segment: the raw text
    is kept at that index and the segment is marked FAILED.
    """
    results: list[str | None] = [None] * len(segments)
    pending: asyncio.Queue[Segment] = asyncio.Queue()
    for segment in segments:
        pending.put_nowait(segment)

    async def worker(worker_id: int) -> None:
        while True:
            try:
                segment = pending.get_nowait()
            except asyncio.QueueEmpty:
                return

            segment.state = SegmentState.IN_FLIGHT
            try:
                segment.translated_text = await translate_one(segment.raw_text)
                segment.state = SegmentState.DONE
            except Exception as e:
                segment.state = SegmentState.FAILED
                logger.warning(
                    "Chunk %d failed on worker %d, keeping original text: %s",
                    segment.index, worker_id, e,
                )
            results[segment.index] = segment.output

    pool_size = max(1, min(workers, len(segments)))
    await asyncio.gather(*(worker(i) for i in range(pool_size)))

    return [r if r is not None else segments[i].raw_text for i, r in enumerate(results)]
