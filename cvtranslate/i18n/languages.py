"""
Language codes and display names.

Requests may name the target language either by code ("es") or by name
("Spanish"). The prompt always receives the display name.
"""

from __future__ import annotations

from enum import Enum


class Language(str, Enum):
    """Languages with a known display name."""

    EN = "en"
    ES = "es"
    FR = "fr"
    DE = "de"
    IT = "it"
    PT = "pt"
    NL = "nl"
    PL = "pl"
    RU = "ru"
    UK = "uk"
    TR = "tr"
    ZH = "zh"
    ZH_TW = "zh-tw"
    JA = "ja"
    KO = "ko"
    VI = "vi"
    TH = "th"
    ID = "id"
    HI = "hi"
    SV = "sv"
    NO = "no"
    DA = "da"
    FI = "fi"
    EL = "el"
    CS = "cs"
    HU = "hu"
    RO = "ro"
    # RTL
    AR = "ar"
    HE = "he"
    FA = "fa"
    UR = "ur"


LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "nl": "Dutch",
    "pl": "Polish",
    "ru": "Russian",
    "uk": "Ukrainian",
    "tr": "Turkish",
    "zh": "Chinese (Simplified)",
    "zh-tw": "Chinese (Traditional)",
    "ja": "Japanese",
    "ko": "Korean",
    "vi": "Vietnamese",
    "th": "Thai",
    "id": "Indonesian",
    "hi": "Hindi",
    "sv": "Swedish",
    "no": "Norwegian",
    "da": "Danish",
    "fi": "Finnish",
    "el": "Greek",
    "cs": "Czech",
    "hu": "Hungarian",
    "ro": "Romanian",
    "ar": "Arabic",
    "he": "Hebrew",
    "fa": "Persian",
    "ur": "Urdu",
}

# Reverse lookup, plus a few common spellings
_NAME_TO_CODE: dict[str, str] = {
    **{name.lower(): code for code, name in LANGUAGE_NAMES.items()},
    "chinese": "zh",
    "farsi": "fa",
    "portugese": "pt",
}

RTL_LANGUAGES: list[Language] = [Language.AR, Language.HE, Language.FA, Language.UR]

SUPPORTED_LANGUAGES = list(Language)


def normalize_language_code(value: str) -> str:
    """Map a code or a language name to its code; unknown values pass through lowercased."""
    value = value.lower().strip()
    return _NAME_TO_CODE.get(value, value)


def get_language_name(value: str) -> str:
    """
    Display name for a language given as code or name.

    Unknown languages keep the caller's spelling, so "Klingon" is still sent
    to the model as "Klingon".
    """
    code = normalize_language_code(value)
    return LANGUAGE_NAMES.get(code, value.strip())


def is_rtl(value: str) -> bool:
    """Check if language is right-to-left."""
    return normalize_language_code(value) in {lang.value for lang in RTL_LANGUAGES}
