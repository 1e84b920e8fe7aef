"""
Single translation unit: one segment, one prompt, one call.
"""

from __future__ import annotations

import logging

from cvtranslate.core.models import ModelTier
from cvtranslate.i18n.healer import strip_fences
from cvtranslate.i18n.languages import get_language_name, normalize_language_code
from cvtranslate.services.ai.client import TextService
from cvtranslate.storage.base import CacheStorage


logger = logging.getLogger(__name__)


JSON_PROMPT = """You are a highly reliable translation engine.
Translate ONLY human-readable text values in this JSON to {language}.

STRICT RULES:
- DO NOT change JSON keys.
- DO NOT change array structure.
- DO NOT translate identifiers, ids, keys, URLs, emails, or paths.
- DO NOT add new fields.
- DO NOT remove any fields.
- The text may be a fragment of a larger JSON document. Keep every leading
  or trailing comma, bracket and quote exactly where it is.
- Return ONLY valid JSON syntax, with no commentary and no code fences.
- If you cannot translate a value, keep it unchanged.
- Preserve formatting and punctuation.
- Fix any spelling or grammar mistakes naturally.

TEXT:
{text}
"""

TEXT_PROMPT = """You are a professional CV translator.
Translate the following text to {language}.

RULES:
- Return ONLY the translated text, with no quotes, notes or explanations.
- DO NOT translate URLs, emails, paths, product names or technology names.
- Preserve line breaks and punctuation.

TEXT:
{text}
"""

# Characters of a segment used in the sub-segment cache key
SEGMENT_KEY_PREFIX = 50


def _unwrap(raw: str, output: str) -> str:
    """Undo an object wrapper the model added around a bare member list."""
    if raw.lstrip()[:1] in ("{", "[") or not output:
        return output
    if output.startswith("{") and output.endswith("}"):
        return output[1:-1].strip()
    return output


def _restore_edges(raw: str, output: str) -> str:
    """Put back a boundary comma the model dropped from a fragment."""
    if raw.startswith(",") and not output.startswith(","):
        output = "," + output
    if raw.endswith(",") and not output.endswith(","):
        output += ","
    return output


def normalize_output(raw: str, output: str) -> str:
    """Clean one segment's model output so it concatenates with its neighbours."""
    output = strip_fences(output).strip()
    output = _unwrap(raw, output)
    return _restore_edges(raw, output)


class TranslationInvoker:
    """
    Sends one segment to the text service.

    An optional short-lived cache keyed by target language plus a prefix of
    the segment absorbs repeated sub-segments within a run. It is off unless
    `segment_cache_ttl` is set, since segments sharing a prefix collide.
    """

    def __init__(
        self,
        service: TextService,
        segment_cache: CacheStorage | None = None,
        segment_cache_ttl: int = 0,
    ):
        self.service = service
        self.segment_cache = segment_cache if segment_cache_ttl > 0 else None
        self.segment_cache_ttl = segment_cache_ttl

    def _cache_key(self, kind: str, text: str, target_language: str) -> str:
        return f"{kind}:{normalize_language_code(target_language)}:{text[:SEGMENT_KEY_PREFIX]}"

    async def invoke(
        self,
        segment_text: str,
        target_language: str,
        tier: ModelTier = ModelTier.PRIMARY,
    ) -> str:
        """Translate a JSON fragment and return normalized output."""
        key = self._cache_key("json", segment_text, target_language)
        if self.segment_cache:
            cached = await self.segment_cache.get(key)
            if cached is not None:
                return cached

        prompt = JSON_PROMPT.format(
            language=get_language_name(target_language), text=segment_text
        )
        raw_output = await self.service.generate(prompt, tier)
        translated = normalize_output(segment_text, raw_output)

        if self.segment_cache:
            await self.segment_cache.set(key, translated, ttl=self.segment_cache_ttl)
        return translated

    async def invoke_text(
        self,
        text: str,
        target_language: str,
        tier: ModelTier = ModelTier.PRIMARY,
    ) -> str:
        """Translate a plain-text field (field-by-field mode)."""
        if not text or not text.strip():
            return text

        prompt = TEXT_PROMPT.format(language=get_language_name(target_language), text=text)
        raw_output = await self.service.generate(prompt, tier)
        return strip_fences(raw_output).strip()
