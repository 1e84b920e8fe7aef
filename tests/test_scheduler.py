"""
Tests for streamed and bulk segment scheduling.
"""

import asyncio

import pytest

from cvtranslate.core.errors import PermanentUpstreamError, TranslationCancelledError
from cvtranslate.core.models import ProgressKind, Segment, SegmentState
from cvtranslate.i18n.scheduler import stream_segments, translate_bulk


def make_segments(*texts):
    return [Segment(index=i, raw_text=text) for i, text in enumerate(texts)]


async def shout(text: str) -> str:
    return text.upper()


# =============================================================================
# Stream mode
# =============================================================================


class TestStreamSegments:
    @pytest.mark.asyncio
    async def test_events_in_order(self):
        segments = make_segments("a", "b", "c", "d")

        events = [e async for e in stream_segments(segments, shout, pause=0)]

        assert events[0].kind == ProgressKind.START
        assert events[0].segment_count == 4
        chunks = events[1:]
        assert [e.kind for e in chunks] == [ProgressKind.CHUNK] * 4
        assert [e.index for e in chunks] == [0, 1, 2, 3]
        assert [e.text for e in chunks] == ["A", "B", "C", "D"]
        assert [e.percentage for e in chunks] == [25, 50, 75, 100]
        assert all(s.state == SegmentState.DONE for s in segments)

    @pytest.mark.asyncio
    async def test_one_call_in_flight(self):
        in_flight = 0
        peak = 0

        async def slow(text):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return text

        segments = make_segments("a", "b", "c")
        _ = [e async for e in stream_segments(segments, slow, pause=0)]

        assert peak == 1

    @pytest.mark.asyncio
    async def test_failure_aborts_stream(self):
        calls = []

        async def flaky(text):
            calls.append(text)
            if text == "b":
                raise PermanentUpstreamError("400 Bad Request", status_code=400)
            return text

        segments = make_segments("a", "b", "c")
        events = [e async for e in stream_segments(segments, flaky, pause=0)]

        assert [e.kind for e in events] == [
            ProgressKind.START,
            ProgressKind.CHUNK,
            ProgressKind.ERROR,
        ]
        assert "chunk 1" in events[-1].message
        assert calls == ["a", "b"]
        assert segments[1].state == SegmentState.FAILED
        assert segments[2].state == SegmentState.PENDING

    @pytest.mark.asyncio
    async def test_cancel_stops_further_calls(self):
        cancel = asyncio.Event()
        calls = []

        async def record(text):
            calls.append(text)
            return text

        segments = make_segments("a", "b", "c")
        events = []
        async for event in stream_segments(segments, record, pause=0, cancel=cancel):
            events.append(event)
            if event.kind == ProgressKind.CHUNK:
                cancel.set()

        assert calls == ["a"]
        assert events[-1].kind == ProgressKind.CHUNK

    @pytest.mark.asyncio
    async def test_failure_after_cancel_is_silent(self):
        cancel = asyncio.Event()

        async def aborted(text):
            cancel.set()
            raise TranslationCancelledError("Translation cancelled")

        segments = make_segments("a", "b")
        events = [e async for e in stream_segments(segments, aborted, pause=0, cancel=cancel)]

        assert [e.kind for e in events] == [ProgressKind.START]
        assert segments[0].state == SegmentState.FAILED

    @pytest.mark.asyncio
    async def test_empty_input(self):
        events = [e async for e in stream_segments([], shout, pause=0)]

        assert len(events) == 1
        assert events[0].segment_count == 0


# =============================================================================
# Bulk mode
# =============================================================================


class TestTranslateBulk:
    @pytest.mark.asyncio
    async def test_reverse_completion_keeps_order(self):
        texts = [f"s{i}" for i in range(6)]
        segments = make_segments(*texts)
        finished = []

        async def later_first(text):
            index = texts.index(text)
            # Earlier segments take longest, so workers finish in reverse
            await asyncio.sleep(0.01 * (len(texts) - index))
            finished.append(index)
            return text.upper()

        results = await translate_bulk(segments, later_first, workers=len(texts))

        assert finished == sorted(finished, reverse=True)
        assert results == [t.upper() for t in texts]

    @pytest.mark.asyncio
    async def test_pool_size_is_bounded(self):
        in_flight = 0
        peak = 0

        async def slow(text):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return text

        segments = make_segments(*"abcdefgh")
        await translate_bulk(segments, slow, workers=3)

        assert peak == 3

    @pytest.mark.asyncio
    async def test_each_segment_claimed_once(self):
        calls = []

        async def record(text):
            calls.append(text)
            await asyncio.sleep(0)
            return text

        segments = make_segments(*"abcdefgh")
        await translate_bulk(segments, record, workers=5)

        assert sorted(calls) == list("abcdefgh")

    @pytest.mark.asyncio
    async def test_failed_segment_keeps_original(self):
        async def flaky(text):
            if text == "b":
                raise PermanentUpstreamError("500 Internal", status_code=500)
            return text.upper()

        segments = make_segments("a", "b", "c")
        results = await translate_bulk(segments, flaky, workers=2)

        assert results == ["A", "b", "C"]
        assert [s.state for s in segments] == [
            SegmentState.DONE,
            SegmentState.FAILED,
            SegmentState.DONE,
        ]

    @pytest.mark.asyncio
    async def test_no_segments(self):
        assert await translate_bulk([], shout, workers=3) == []
