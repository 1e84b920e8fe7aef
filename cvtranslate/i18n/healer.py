"""
Best-effort repair of model output before parsing.

Assumes the only damage is what chunked translation produces: code fences,
trailing commas, missing separators between concatenated literals and
truncated closers. It is not a general JSON fixer. Every repair looks at
characters outside string literals only, and healing is idempotent:
heal(heal(x)) == heal(x).
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from cvtranslate.core.errors import MalformedOutputError


logger = logging.getLogger(__name__)

_LEADING_FENCE = re.compile(r"^\s*```[\w-]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?[ \t]*```\s*$")

_MATCHING = {"{": "}", "[": "]"}


def strip_fences(text: str) -> str:
    """Remove markdown code-fence markers wrapping the text."""
    previous = None
    while previous != text:
        previous = text
        text = _LEADING_FENCE.sub("", text, count=1)
        text = _TRAILING_FENCE.sub("", text, count=1)
    return text


def _repair_boundaries(text: str) -> str:
    """Drop trailing commas before closers and separate adjacent literals."""
    out: list[str] = []
    in_string = False
    escaped = False

    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            out.append(char)
            continue

        if char in "}]":
            while True:
                end = len(out)
                while end and out[end - 1].isspace():
                    end -= 1
                if not (end and out[end - 1] == ","):
                    break
                del out[end - 1:]
        elif char in "{[":
            end = len(out)
            while end and out[end - 1].isspace():
                end -= 1
            if end and out[end - 1] in "}]":
                del out[end:]
                out.append(",")
        elif char == '"':
            in_string = True

        out.append(char)

    return "".join(out)


def _close_open_brackets(text: str) -> str:
    """Terminate a truncated string and append the missing closers in order."""
    stack: list[str] = []
    in_string = False
    escaped = False

    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char in _MATCHING:
            stack.append(char)
        elif char in "}]" and stack:
            stack.pop()

    if in_string:
        if escaped:
            text = text[:-1]
        text += '"'

    if stack:
        text = text.rstrip()
        while text.endswith(","):
            text = text[:-1].rstrip()
        text += "".join(_MATCHING[opener] for opener in reversed(stack))

    return text


def heal(text: str) -> str:
    """
    Repair concatenated model output into best-effort document syntax.

    Applied in order: fence stripping, trailing-comma removal, separator
    insertion between adjacent literals, opening bracket when missing, then
    the closers still owed by unbalanced `{`/`[`.
    """
    healed = strip_fences(text).strip()
    healed = _repair_boundaries(healed)

    if not healed.startswith(("{", "[")):
        healed = "{" + healed

    return _close_open_brackets(healed)


def parse_healed(text: str) -> Any:
    """Heal `text` and parse it strictly."""
    healed = heal(text)
    try:
        return json.loads(healed)
    except json.JSONDecodeError as e:
        logger.error("JSON parse failed after healing: %s", healed[:200])
        raise MalformedOutputError(
            f"Failed to parse translated JSON: {e.msg}", excerpt=healed[:200]
        ) from e
