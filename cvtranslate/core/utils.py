"""
Shared utility functions.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def serialize_document(document: Any) -> str:
    """
    Serialize a document in the compact form every pipeline stage agrees on.

    Non-ASCII text is kept as-is so the model sees real characters rather
    than escape sequences.
    """
    return json.dumps(document, ensure_ascii=False, separators=(",", ":"))
