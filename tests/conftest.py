"""
Shared fixtures: fake text services and pipeline settings.
"""

from __future__ import annotations

import asyncio
import re
from typing import Callable

import pytest

from cvtranslate.config import Settings
from cvtranslate.core.errors import TransientUpstreamError
from cvtranslate.core.models import ModelTier


_STRING_TOKEN = re.compile(r'"(?:[^"\\]|\\.)*"')


def prompt_text(prompt: str) -> str:
    """The text a prompt asks to translate (templates end with '{text}\\n')."""
    parts = prompt.split("TEXT:\n", 1)
    return parts[1][:-1] if len(parts) == 2 else prompt


def uppercase_values(text: str) -> str:
    """Uppercase every JSON string value, leaving keys alone."""

    def replace(match: re.Match) -> str:
        if text[match.end():].lstrip().startswith(":"):
            return match.group(0)
        return match.group(0).upper()

    return _STRING_TOKEN.sub(replace, text)


class FakeTextService:
    """
    Scriptable stand-in for the text-completion service.

    `transform` maps the text found in the prompt to the reply; `failures`
    is a list of exceptions raised, in order, before replies start.
    """

    def __init__(
        self,
        transform: Callable[[str], str] = lambda text: text,
        failures: list[Exception] | None = None,
        delay: Callable[[str], float] | None = None,
    ):
        self.transform = transform
        self.failures = list(failures or [])
        self.delay = delay
        self.calls: list[tuple[str, ModelTier]] = []

    async def generate(self, prompt: str, tier: ModelTier = ModelTier.PRIMARY) -> str:
        text = prompt_text(prompt)
        self.calls.append((text, tier))

        if self.delay:
            await asyncio.sleep(self.delay(text))
        if self.failures:
            raise self.failures.pop(0)
        return self.transform(text)

    @property
    def tiers(self) -> list[ModelTier]:
        return [tier for _, tier in self.calls]


class AlwaysRateLimited(FakeTextService):
    async def generate(self, prompt: str, tier: ModelTier = ModelTier.PRIMARY) -> str:
        self.calls.append((prompt_text(prompt), tier))
        raise TransientUpstreamError("429 Too Many Requests", status_code=429)


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def settings():
    """Pipeline settings with no pacing delay."""
    return Settings(
        _env_file=None,
        chunk_size=40,
        stream_pause=0,
        bulk_workers=3,
        max_attempts=4,
        retry_initial_delay=0.3,
        fallback_attempt=3,
    )


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def sample_cv():
    return {
        "personalInfo": {
            "fullName": "Jane Doe",
            "professionalTitle": "Software engineer",
            "avatarUrl": "https://example.com/a.png",
        },
        "profile": "Builds reliable backend systems",
        "skills": ["python", "distributed systems", "mentoring"],
        "experiences": [
            {"id": "exp-1", "jobTitle": "Engineer", "company": "Acme", "missions": ["ship it", "fix it"]},
            {"id": "exp-2", "jobTitle": "Lead", "company": "Initech", "missions": []},
        ],
        "yearsOfExperience": 9,
        "remote": True,
        "photo": None,
    }

