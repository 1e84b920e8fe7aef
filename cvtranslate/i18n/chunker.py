"""
Structure-aware splitting of serialized documents.

A chunk boundary is only ever placed where the scanner is outside every
string literal and every bracket it has opened has been closed. Joining the
chunks back together always reproduces the input exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from cvtranslate.core.models import Segment
from cvtranslate.core.utils import serialize_document


DEFAULT_CHUNK_SIZE = 1000

STRUCTURAL = "structural"
WORDS = "words"

_OPENERS = "{["
_CLOSERS = "}]"
_BOUNDARIES = ",}]"


def split_segments(text: str, max_length: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    """
    Split serialized text into chunks of at least `max_length` characters.

    A chunk grows past `max_length` until depth returns to zero outside a
    string and a `,` or closing bracket has just been read, so a long string
    value or nested object is never cut. Only the last chunk may be shorter.
    """
    if max_length < 1:
        raise ValueError("max_length must be positive")

    chunks: list[str] = []
    buffer: list[str] = []
    size = 0
    depth = 0
    in_string = False
    escaped = False

    for i, char in enumerate(text):
        buffer.append(char)
        size += 1

        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            depth -= 1

        # Cut only after a separator or a closed value, never between a key and its colon
        if size >= max_length and depth == 0 and not in_string and char in _BOUNDARIES:
            if char != "," and text[i + 1:i + 2] == ",":
                continue  # keep the separator with the value it follows
            chunks.append("".join(buffer))
            buffer = []
            size = 0

    if buffer:
        chunks.append("".join(buffer))

    return chunks


def split_words(text: str, max_length: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    """
    Whitespace splitter that ignores structure.

    Degraded mode only: chunks may cut through strings and brackets, and the
    separating spaces are dropped, so results must go through an aggressive
    heal before parsing.
    """
    chunks: list[str] = []
    current = ""

    for word in text.split(" "):
        candidate = f"{current} {word}" if current else word
        if len(candidate) > max_length and current:
            chunks.append(current.strip())
            current = word
        else:
            current = candidate

    if current.strip():
        chunks.append(current.strip())

    return [c for c in chunks if c]


# =============================================================================
# Document-level splitting
# =============================================================================


@dataclass
class SplitDocument:
    """
    A serialized document cut into segments.

    For objects and arrays the outer brackets are held aside in `opener` and
    `closer` and only the body is chunked, which puts every top-level member
    at depth zero and gives the chunker somewhere to cut.
    """

    serialized: str
    opener: str = ""
    closer: str = ""
    separator: str = ""  # " " for word chunks, which drop the space they were cut on
    segments: list[Segment] = field(default_factory=list)

    @property
    def body(self) -> str:
        return self.separator.join(s.raw_text for s in self.segments)

    def assemble(self, parts: list[str]) -> str:
        return self.opener + self.separator.join(parts) + self.closer


def split_document(
    document: Any,
    max_length: int = DEFAULT_CHUNK_SIZE,
    strategy: str = STRUCTURAL,
) -> SplitDocument:
    """
    Serialize `document` and split it into ordered segments.

    `strategy` is STRUCTURAL (default) or WORDS. Word chunks cover the whole
    serialized text, brackets included, and rely on healing to put the
    document back together.
    """
    if strategy not in (STRUCTURAL, WORDS):
        raise ValueError(f"Unknown chunk strategy: {strategy}")

    serialized = serialize_document(document)

    if strategy == WORDS and isinstance(document, (dict, list)):
        segments = [
            Segment(index=i, raw_text=chunk)
            for i, chunk in enumerate(split_words(serialized, max_length))
        ]
        return SplitDocument(serialized=serialized, separator=" ", segments=segments)

    if isinstance(document, (dict, list)):
        opener, closer, body = serialized[0], serialized[-1], serialized[1:-1]
    else:
        # Scalars carry nothing to translate structurally
        return SplitDocument(serialized=serialized)

    segments = [
        Segment(index=i, raw_text=chunk)
        for i, chunk in enumerate(split_segments(body, max_length))
    ]
    return SplitDocument(serialized=serialized, opener=opener, closer=closer, segments=segments)
