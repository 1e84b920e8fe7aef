"""
CV extraction - free text to a structured CV document.

The extracted document has the same shape the translator is usually given,
so an uploaded CV can be parsed once and then translated.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from cvtranslate.core.errors import InvalidRequestError, MalformedOutputError
from cvtranslate.core.models import ModelTier
from cvtranslate.i18n.healer import strip_fences
from cvtranslate.services.ai.client import TextService


logger = logging.getLogger(__name__)


CV_SCHEMA = """{
  "personalInfo": { "fullName": "", "professionalTitle": "", "avatarUrl": "" },
  "profile": "",
  "contact": { "email": "", "phone": "", "location": "", "github": "", "linkedin": "" },
  "skills": [],
  "technologies": [{ "id": "", "title": "", "items": "" }],
  "experiences": [{ "id": "", "jobTitle": "", "company": "", "missions": [] }],
  "languages": [{ "name": "", "flag": "", "level": "" }],
  "certifications": [{ "name": "", "issuer": "" }],
  "customSections": [],
  "sectionOrder": ["personal", "profile", "skills", "technologies", "experiences", "certifications", "languages"],
  "sectionTitles": {
    "profile": "Professional Profile",
    "skills": "Skills",
    "technologies": "Technical Environment",
    "experiences": "Professional Experience",
    "certifications": "Certifications",
    "languages": "Languages"
  }
}"""

EXTRACT_PROMPT = """You are a CV parser. Return ONLY valid JSON matching exactly this schema:

{schema}

RULES:
- If a field is missing, fill with "" or [].
- Extract ALL experiences & missions.
- Generate unique IDs.

CV TEXT:
{text}
"""

_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")


def parse_cv_output(output: str) -> dict[str, Any]:
    """Pull the JSON object out of a model reply."""
    match = _OBJECT_SPAN.search(strip_fences(output.strip()))
    if not match:
        raise MalformedOutputError("No JSON extracted", excerpt=output[:200])

    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise MalformedOutputError(
            f"Failed to extract CV: {e.msg}", excerpt=match.group(0)[:200]
        ) from e


async def extract_cv(text: str, service: TextService) -> dict[str, Any]:
    """Extract a structured CV from free text."""
    if not text or not text.strip():
        raise InvalidRequestError("text is required")

    prompt = EXTRACT_PROMPT.format(schema=CV_SCHEMA, text=text)
    output = await service.generate(prompt, ModelTier.PRIMARY)
    return parse_cv_output(output)
