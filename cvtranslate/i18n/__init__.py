"""
Internationalization - resilient chunked translation of structured documents.

Design:
1. Split the serialized document only where brackets are balanced
2. Translate segments with retry, backoff and a fallback model
3. Heal and parse the reassembled text, then check nothing but text changed
4. Cache whole documents by content hash and language

Usage:
    from cvtranslate.i18n import DocumentTranslator

    translator = DocumentTranslator(service)
    cv_es = await translator.translate(cv, "Spanish")

    async for event in translator.stream(cv, "Spanish"):
        print(event.kind, event.percentage)
"""

from cvtranslate.i18n.chunker import (
    SplitDocument,
    split_document,
    split_segments,
    split_words,
)
from cvtranslate.i18n.healer import (
    heal,
    parse_healed,
    strip_fences,
)
from cvtranslate.i18n.invoker import TranslationInvoker
from cvtranslate.i18n.retry import RetryPolicy, with_retry
from cvtranslate.i18n.scheduler import stream_segments, translate_bulk
from cvtranslate.i18n.cache import (
    CacheFlusher,
    DocumentTranslationCache,
    content_fingerprint,
    make_cache_key,
    rolling_hash,
)
from cvtranslate.i18n.structure import ensure_same_shape, find_shape_mismatch
from cvtranslate.i18n.pipeline import DocumentTranslator, validate_request
from cvtranslate.i18n.languages import (
    Language,
    SUPPORTED_LANGUAGES,
    RTL_LANGUAGES,
    get_language_name,
    normalize_language_code,
    is_rtl,
)

__all__ = [
    # Pipeline
    "DocumentTranslator",
    "validate_request",
    # Chunking
    "SplitDocument",
    "split_document",
    "split_segments",
    "split_words",
    # Healing
    "heal",
    "parse_healed",
    "strip_fences",
    "ensure_same_shape",
    "find_shape_mismatch",
    # Calls
    "TranslationInvoker",
    "RetryPolicy",
    "with_retry",
    "stream_segments",
    "translate_bulk",
    # Cache
    "CacheFlusher",
    "DocumentTranslationCache",
    "content_fingerprint",
    "make_cache_key",
    "rolling_hash",
    # Language utilities
    "Language",
    "SUPPORTED_LANGUAGES",
    "RTL_LANGUAGES",
    "get_language_name",
    "normalize_language_code",
    "is_rtl",
]
