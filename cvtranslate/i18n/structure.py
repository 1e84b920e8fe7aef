"""
Structural equivalence between a document and its translation.

Only string leaves may differ. Keys, array lengths, numbers, booleans and
nulls must come back untouched.
"""

from __future__ import annotations

from typing import Any

from cvtranslate.core.errors import MalformedOutputError


def find_shape_mismatch(original: Any, translated: Any, path: str = "$") -> str | None:
    """Return the path of the first structural difference, or None."""
    if isinstance(original, dict):
        if not isinstance(translated, dict):
            return path
        if set(original) != set(translated):
            return path
        for key, value in original.items():
            mismatch = find_shape_mismatch(value, translated[key], f"{path}.{key}")
            if mismatch:
                return mismatch
        return None

    if isinstance(original, list):
        if not isinstance(translated, list) or len(original) != len(translated):
            return path
        for i, (a, b) in enumerate(zip(original, translated)):
            mismatch = find_shape_mismatch(a, b, f"{path}[{i}]")
            if mismatch:
                return mismatch
        return None

    if isinstance(original, str):
        return None if isinstance(translated, str) else path

    # bool is an int subclass; compare types too so True never matches 1
    if type(original) is not type(translated) or original != translated:
        return path
    return None


def ensure_same_shape(original: Any, translated: Any) -> None:
    mismatch = find_shape_mismatch(original, translated)
    if mismatch:
        raise MalformedOutputError(f"Translated document changed structure at {mismatch}")
