"""
Tests for the text-service boundary: error classification and CV extraction.
"""

import pytest

from cvtranslate.config import Settings
from cvtranslate.core.errors import (
    InvalidRequestError,
    MalformedOutputError,
    PermanentUpstreamError,
    TransientUpstreamError,
)
from cvtranslate.core.models import ModelTier
from cvtranslate.services.ai.client import GeminiTextService, classify_exception
from cvtranslate.services.ai.cv_extractor import extract_cv, parse_cv_output

from tests.conftest import FakeTextService


class ProviderError(Exception):
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class FakeLM:
    def __init__(self, outputs=None, error=None):
        self.outputs = outputs or []
        self.error = error
        self.prompts = []

    async def acall(self, prompt=None, **kwargs):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.outputs


# =============================================================================
# Error classification
# =============================================================================


class TestClassifyException:
    @pytest.mark.parametrize("status", [429, 503])
    def test_transient_status_codes(self, status):
        error = classify_exception(ProviderError("upstream", status_code=status))
        assert isinstance(error, TransientUpstreamError)
        assert error.status_code == status

    @pytest.mark.parametrize("status", [400, 401, 500])
    def test_permanent_status_codes(self, status):
        assert isinstance(
            classify_exception(ProviderError("upstream", status_code=status)),
            PermanentUpstreamError,
        )

    def test_message_fallback(self):
        error = classify_exception(RuntimeError("got 429 Too Many Requests"))
        assert isinstance(error, TransientUpstreamError)
        assert error.status_code == 429

    def test_unknown_error_is_permanent(self):
        error = classify_exception(RuntimeError("connection reset"))
        assert isinstance(error, PermanentUpstreamError)
        assert error.status_code is None

    def test_already_classified_passes_through(self):
        original = TransientUpstreamError("slow down", status_code=429)
        assert classify_exception(original) is original


# =============================================================================
# Gemini service
# =============================================================================


class TestGeminiTextService:
    @pytest.fixture
    def service(self):
        return GeminiTextService(Settings(_env_file=None, google_api_key="test-key"))

    @pytest.mark.asyncio
    async def test_generate_uses_tier_lm(self, service):
        primary = FakeLM(outputs=["hola"])
        fallback = FakeLM(outputs=[{"text": "bonjour"}])
        service._lms = {ModelTier.PRIMARY: primary, ModelTier.FALLBACK: fallback}

        assert await service.generate("p1") == "hola"
        assert await service.generate("p2", ModelTier.FALLBACK) == "bonjour"
        assert primary.prompts == ["p1"]
        assert fallback.prompts == ["p2"]

    @pytest.mark.asyncio
    async def test_provider_errors_are_classified(self, service):
        service._lms = {ModelTier.PRIMARY: FakeLM(error=ProviderError("quota", status_code=429))}

        with pytest.raises(TransientUpstreamError):
            await service.generate("p")

    @pytest.mark.asyncio
    async def test_empty_response_is_permanent(self, service):
        service._lms = {ModelTier.PRIMARY: FakeLM(outputs=[])}

        with pytest.raises(PermanentUpstreamError):
            await service.generate("p")

    def test_model_names(self, service):
        assert service.model_name(ModelTier.PRIMARY) == "gemini-2.0-flash-lite"
        assert service.model_name(ModelTier.FALLBACK) == "gemini-2.0-flash-lite-001"

    def test_missing_key(self):
        service = GeminiTextService(
            Settings(_env_file=None, google_api_key="", gemini_api_key="")
        )
        with pytest.raises(ValueError):
            service.lm_for(ModelTier.PRIMARY)


# =============================================================================
# CV extraction
# =============================================================================


class TestExtractCV:
    def test_parse_fenced_reply(self):
        reply = 'Here you go:\n```json\n{"profile": "Engineer", "skills": ["python"]}\n```'
        assert parse_cv_output(reply) == {"profile": "Engineer", "skills": ["python"]}

    def test_no_object_in_reply(self):
        with pytest.raises(MalformedOutputError):
            parse_cv_output("sorry, I cannot help")

    def test_broken_object(self):
        with pytest.raises(MalformedOutputError):
            parse_cv_output('{"profile": }')

    @pytest.mark.asyncio
    async def test_extract(self):
        service = FakeTextService(transform=lambda text: '{"profile": "%s"}' % text.strip())

        assert await extract_cv("Jane, engineer", service) == {"profile": "Jane, engineer"}

    @pytest.mark.asyncio
    async def test_empty_text_rejected(self):
        service = FakeTextService()

        with pytest.raises(InvalidRequestError):
            await extract_cv("  ", service)
        assert service.calls == []
