"""
Core module - data models, errors and shared helpers.

This module contains:
- models: Segment, AttemptState, CacheEntry, ProgressEvent
- errors: Failure taxonomy used across the pipeline
- utils: Shared utility functions
"""

from cvtranslate.core.models import (
    Segment,
    SegmentState,
    ModelTier,
    AttemptState,
    CacheEntry,
    CacheStats,
    ProgressEvent,
    ProgressKind,
    TranslateRequest,
)

from cvtranslate.core.errors import (
    TranslationError,
    InvalidRequestError,
    UpstreamError,
    TransientUpstreamError,
    PermanentUpstreamError,
    RetriesExhaustedError,
    MalformedOutputError,
    TranslationCancelledError,
)

from cvtranslate.core.utils import (
    serialize_document,
    utc_now,
)

__all__ = [
    # Models
    "Segment",
    "SegmentState",
    "ModelTier",
    "AttemptState",
    "CacheEntry",
    "CacheStats",
    "ProgressEvent",
    "ProgressKind",
    "TranslateRequest",
    # Errors
    "TranslationError",
    "InvalidRequestError",
    "UpstreamError",
    "TransientUpstreamError",
    "PermanentUpstreamError",
    "RetriesExhaustedError",
    "MalformedOutputError",
    "TranslationCancelledError",
    # Utils
    "serialize_document",
    "utc_now",
]
