"""
Text-completion client using DSPy with Gemini models.

The rest of the pipeline only sees the `TextService` protocol. Provider
exceptions are classified here, once, into the pipeline's error taxonomy.
"""

from __future__ import annotations

import logging
from typing import Protocol

import dspy
import httpx

from cvtranslate.config import Settings, get_settings
from cvtranslate.core.errors import (
    PermanentUpstreamError,
    TransientUpstreamError,
    UpstreamError,
)
from cvtranslate.core.models import ModelTier


logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({429, 503})


class TextService(Protocol):
    """Anything that turns a prompt into text."""

    async def generate(self, prompt: str, tier: ModelTier = ModelTier.PRIMARY) -> str:
        ...


def classify_exception(exc: BaseException) -> UpstreamError:
    """
    Map a provider exception onto Transient/Permanent.

    litellm (under dspy) exposes `status_code`; other clients use `status`.
    The message is only consulted when neither attribute is present.
    """
    if isinstance(exc, UpstreamError):
        return exc

    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    try:
        status = int(status) if status is not None else None
    except (TypeError, ValueError):
        status = None

    if status is None:
        message = str(exc)
        for code in TRANSIENT_STATUS_CODES:
            if str(code) in message:
                status = code
                break

    return error_for_status(str(exc), status)


def error_for_status(message: str, status: int | None) -> UpstreamError:
    if status in TRANSIENT_STATUS_CODES:
        return TransientUpstreamError(message, status_code=status)
    return PermanentUpstreamError(message, status_code=status)


def get_lm(model: str, api_key: str) -> dspy.LM:
    """
    Build a Gemini LM.

    Responses are not cached at this layer; the translation cache handles
    whole documents.
    """
    if not api_key:
        raise ValueError("GOOGLE_API_KEY or GEMINI_API_KEY not set")

    # Use gemini/ prefix for litellm
    return dspy.LM(model=f"gemini/{model}", api_key=api_key, cache=False)


class GeminiTextService:
    """
    Primary and fallback Gemini models behind one `generate` call.

    LMs are created lazily so the service can be constructed before an API
    key is available.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._lms: dict[ModelTier, dspy.LM] = {}

    def model_name(self, tier: ModelTier) -> str:
        if tier == ModelTier.FALLBACK:
            return self.settings.fallback_model
        return self.settings.primary_model

    def lm_for(self, tier: ModelTier) -> dspy.LM:
        if tier not in self._lms:
            self._lms[tier] = get_lm(self.model_name(tier), self.settings.api_key)
        return self._lms[tier]

    async def generate(self, prompt: str, tier: ModelTier = ModelTier.PRIMARY) -> str:
        lm = self.lm_for(tier)
        try:
            outputs = await lm.acall(prompt=prompt)
        except Exception as e:
            raise classify_exception(e) from e

        if not outputs:
            raise PermanentUpstreamError(f"Empty response from {self.model_name(tier)}")

        first = outputs[0]
        if isinstance(first, dict):
            first = first.get("text") or ""
        return str(first)


async def list_models(settings: Settings | None = None) -> list[str]:
    """List model names visible to the configured API key (diagnostics)."""
    settings = settings or get_settings()

    async with httpx.AsyncClient(timeout=15.0) as client:
        response = await client.get(
            settings.models_endpoint, params={"key": settings.api_key}
        )

    data = response.json()
    if response.status_code != 200 or "error" in data:
        message = data.get("error", {}).get("message", response.text)
        raise error_for_status(message, response.status_code)

    return [m["name"] for m in data.get("models", [])]
