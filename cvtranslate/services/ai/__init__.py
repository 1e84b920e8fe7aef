"""
AI services using DSPy with Gemini models.

Everything above this package talks to a `TextService`; provider errors are
classified here into transient and permanent failures.
"""

from cvtranslate.services.ai.client import (
    TextService,
    GeminiTextService,
    classify_exception,
    get_lm,
    list_models,
)
from cvtranslate.services.ai.cv_extractor import extract_cv

__all__ = [
    "TextService",
    "GeminiTextService",
    "classify_exception",
    "get_lm",
    "list_models",
    "extract_cv",
]
