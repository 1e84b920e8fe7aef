"""
Core data models for the translation pipeline.

Segments are owned by a single pipeline run. Cache entries outlive requests
and are keyed by document content plus target language.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from cvtranslate.core.utils import utc_now


# =============================================================================
# Enums
# =============================================================================


class SegmentState(str, Enum):
    """Lifecycle of a single segment."""

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    FAILED = "failed"  # Bulk mode only: original text kept


class ModelTier(str, Enum):
    """Which model variant services a request."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


class ProgressKind(str, Enum):
    """Kinds of streamed progress notifications."""

    START = "start"
    CHUNK = "chunk"
    DONE = "done"
    ERROR = "error"


# =============================================================================
# Segments
# =============================================================================


class Segment(BaseModel):
    """
    A structurally-safe slice of the serialized document.

    Only `translated_text` and `state` change after creation, and only the
    worker that claimed the segment changes them.
    """

    index: int
    raw_text: str
    translated_text: str | None = None
    state: SegmentState = SegmentState.PENDING

    @property
    def output(self) -> str:
        """Translated text, or the raw text when nothing was produced."""
        return self.translated_text if self.translated_text is not None else self.raw_text


class AttemptState(BaseModel):
    """Retry bookkeeping for one segment's attempt sequence."""

    attempt_count: int = 0
    current_delay: float = 0.0
    model_tier: ModelTier = ModelTier.PRIMARY
    delays: list[float] = Field(default_factory=list)


# =============================================================================
# Cache
# =============================================================================


class CacheEntry(BaseModel):
    """A translated document stored under its content+language key."""

    key: str
    payload: Any
    language: str
    fingerprint: str = ""  # length and hash of the source document
    created_at: datetime = Field(default_factory=utc_now)

    def is_expired(self, now: datetime, ttl_seconds: float) -> bool:
        return (now - self.created_at).total_seconds() > ttl_seconds


class CacheStats(BaseModel):
    """Diagnostics snapshot of the translation cache."""

    count: int = 0
    languages: list[str] = Field(default_factory=list)
    per_language: dict[str, int] = Field(default_factory=dict)
    total_size_bytes: int = 0


# =============================================================================
# Progress Events
# =============================================================================


class ProgressEvent(BaseModel):
    """
    Ephemeral notification emitted in stream mode.

    - start: `segment_count` is set
    - chunk: `index`, `text` and `percentage` are set
    - done: `document` holds the parsed translation
    - error: `message` is set; terminates the stream
    """

    kind: ProgressKind
    index: int | None = None
    text: str | None = None
    percentage: int | None = None
    segment_count: int | None = None
    message: str | None = None
    document: Any = None

    @classmethod
    def start(cls, segment_count: int) -> "ProgressEvent":
        return cls(kind=ProgressKind.START, segment_count=segment_count)

    @classmethod
    def chunk(cls, index: int, text: str, completed: int, total: int) -> "ProgressEvent":
        return cls(
            kind=ProgressKind.CHUNK,
            index=index,
            text=text,
            percentage=round(100 * completed / total) if total else 100,
        )

    @classmethod
    def done(cls, document: Any = None) -> "ProgressEvent":
        return cls(kind=ProgressKind.DONE, document=document)

    @classmethod
    def error(cls, message: str) -> "ProgressEvent":
        return cls(kind=ProgressKind.ERROR, message=message)

    def wire_data(self) -> dict[str, Any]:
        """Payload for the `data:` line of a server-sent event."""
        if self.kind == ProgressKind.START:
            return {"chunks": self.segment_count}
        if self.kind == ProgressKind.CHUNK:
            return {"index": self.index, "text": self.text, "progress": self.percentage}
        if self.kind == ProgressKind.ERROR:
            return {"error": self.message}
        return {}


# =============================================================================
# Requests
# =============================================================================


class TranslateRequest(BaseModel):
    """Incoming document translation request: `{"targetLang": ..., "data": ...}`."""

    model_config = {"populate_by_name": True}

    target_lang: str = Field("", alias="targetLang")
    data: Any = None
