"""
Error taxonomy for the translation pipeline.

Every failure that leaves the text service boundary is turned into one of
these types, so callers never need to inspect status codes or messages:

- TransientUpstreamError: rate limited / temporarily unavailable, retried
- PermanentUpstreamError: anything else the service rejects, never retried
- RetriesExhaustedError: transient failures outlasted the retry budget
- MalformedOutputError: reassembled output could not be healed into a document
- InvalidRequestError: the request itself is incomplete, nothing was sent
- TranslationCancelledError: the caller aborted, no further calls were made
"""

from __future__ import annotations


class TranslationError(Exception):
    """Base class for all pipeline failures."""


class InvalidRequestError(TranslationError):
    """A translation request is missing its target language or document."""


class UpstreamError(TranslationError):
    """The text-completion service failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransientUpstreamError(UpstreamError):
    """Rate limited (429) or temporarily unavailable (503)."""


class PermanentUpstreamError(UpstreamError):
    """Any other upstream failure."""


class RetriesExhaustedError(UpstreamError):
    """Every allowed attempt ended in a transient failure."""

    def __init__(self, attempts: int, last_error: BaseException | None = None):
        super().__init__(f"Translation failed after {attempts} attempts")
        self.attempts = attempts
        self.last_error = last_error


class MalformedOutputError(TranslationError):
    """Translated output could not be healed and parsed into a document."""

    def __init__(self, message: str, excerpt: str = ""):
        super().__init__(message)
        self.excerpt = excerpt


class TranslationCancelledError(TranslationError):
    """The caller aborted the request; no further attempts were made."""
