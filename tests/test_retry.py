"""
Tests for retry, backoff and model fallback.
"""

import asyncio

import pytest

from cvtranslate.core.errors import (
    PermanentUpstreamError,
    RetriesExhaustedError,
    TransientUpstreamError,
    TranslationCancelledError,
)
from cvtranslate.core.models import AttemptState, ModelTier
from cvtranslate.i18n.retry import RetryPolicy, with_retry


class ScriptedOperation:
    """Raises the scripted errors in order, then returns `result`."""

    def __init__(self, errors=(), result="ok"):
        self.errors = list(errors)
        self.result = result
        self.tiers: list[ModelTier] = []

    async def __call__(self, tier: ModelTier) -> str:
        self.tiers.append(tier)
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def rate_limited():
    return TransientUpstreamError("429 Too Many Requests", status_code=429)


# =============================================================================
# Policy
# =============================================================================


class TestRetryPolicy:
    def test_tiers(self):
        policy = RetryPolicy(max_attempts=4, fallback_attempt=3)
        assert [policy.tier_for(n) for n in (1, 2, 3, 4)] == [
            ModelTier.PRIMARY,
            ModelTier.PRIMARY,
            ModelTier.FALLBACK,
            ModelTier.FALLBACK,
        ]

    def test_fallback_disabled(self):
        policy = RetryPolicy(fallback_attempt=0)
        assert policy.tier_for(4) == ModelTier.PRIMARY

    def test_from_settings(self, settings):
        policy = RetryPolicy.from_settings(settings)
        assert policy == RetryPolicy(max_attempts=4, initial_delay=0.3, fallback_attempt=3)


# =============================================================================
# Orchestration
# =============================================================================


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_success_first_try(self, recording_sleep):
        operation = ScriptedOperation()

        result = await with_retry(operation, RetryPolicy(), sleep=recording_sleep)

        assert result == "ok"
        assert operation.tiers == [ModelTier.PRIMARY]
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_always_rate_limited_backs_off_then_fails(self, recording_sleep):
        operation = ScriptedOperation(errors=[rate_limited() for _ in range(4)])
        state = AttemptState()

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await with_retry(operation, RetryPolicy(), sleep=recording_sleep, state=state)

        assert recording_sleep.delays == pytest.approx([0.3, 0.6, 1.2])
        assert operation.tiers == [
            ModelTier.PRIMARY,
            ModelTier.PRIMARY,
            ModelTier.FALLBACK,
            ModelTier.FALLBACK,
        ]
        assert exc_info.value.attempts == 4
        assert isinstance(exc_info.value.last_error, TransientUpstreamError)
        assert state.attempt_count == 4
        assert state.delays == pytest.approx([0.3, 0.6, 1.2])

    @pytest.mark.asyncio
    async def test_recovers_on_fallback_tier(self, recording_sleep):
        operation = ScriptedOperation(errors=[rate_limited(), rate_limited()], result="fallback-ok")

        result = await with_retry(operation, RetryPolicy(), sleep=recording_sleep)

        assert result == "fallback-ok"
        assert operation.tiers[-1] == ModelTier.FALLBACK
        assert recording_sleep.delays == pytest.approx([0.3, 0.6])

    @pytest.mark.asyncio
    async def test_unavailable_is_retried(self, recording_sleep):
        operation = ScriptedOperation(
            errors=[TransientUpstreamError("503 Service Unavailable", status_code=503)]
        )

        assert await with_retry(operation, RetryPolicy(), sleep=recording_sleep) == "ok"
        assert len(operation.tiers) == 2

    @pytest.mark.asyncio
    async def test_permanent_error_propagates_immediately(self, recording_sleep):
        error = PermanentUpstreamError("400 Bad Request", status_code=400)
        operation = ScriptedOperation(errors=[error])

        with pytest.raises(PermanentUpstreamError) as exc_info:
            await with_retry(operation, RetryPolicy(), sleep=recording_sleep)

        assert exc_info.value is error
        assert operation.tiers == [ModelTier.PRIMARY]
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_unexpected_exception_propagates(self, recording_sleep):
        operation = ScriptedOperation(errors=[rate_limited(), KeyError("boom")])

        with pytest.raises(KeyError):
            await with_retry(operation, RetryPolicy(), sleep=recording_sleep)

        assert len(operation.tiers) == 2

    @pytest.mark.asyncio
    async def test_custom_budget(self, recording_sleep):
        operation = ScriptedOperation(errors=[rate_limited() for _ in range(2)])
        policy = RetryPolicy(max_attempts=2, initial_delay=0.5, fallback_attempt=2)

        with pytest.raises(RetriesExhaustedError):
            await with_retry(operation, policy, sleep=recording_sleep)

        assert recording_sleep.delays == pytest.approx([0.5])
        assert operation.tiers == [ModelTier.PRIMARY, ModelTier.FALLBACK]


# =============================================================================
# Cancellation
# =============================================================================


class TestWithRetryCancellation:
    @pytest.mark.asyncio
    async def test_cancel_during_backoff_stops_attempts(self):
        cancel = asyncio.Event()
        operation = ScriptedOperation(errors=[rate_limited() for _ in range(4)])

        async def cancelling_sleep(seconds):
            cancel.set()

        with pytest.raises(TranslationCancelledError):
            await with_retry(operation, RetryPolicy(), sleep=cancelling_sleep, cancel=cancel)

        assert operation.tiers == [ModelTier.PRIMARY]

    @pytest.mark.asyncio
    async def test_backoff_returns_early_on_cancel(self):
        cancel = asyncio.Event()
        operation = ScriptedOperation(errors=[rate_limited()])
        policy = RetryPolicy(initial_delay=30)

        async def cancel_soon():
            await asyncio.sleep(0.01)
            cancel.set()

        canceller = asyncio.create_task(cancel_soon())
        with pytest.raises(TranslationCancelledError):
            await asyncio.wait_for(with_retry(operation, policy, cancel=cancel), timeout=5)
        await canceller

        assert len(operation.tiers) == 1

    @pytest.mark.asyncio
    async def test_already_cancelled_makes_no_call(self, recording_sleep):
        cancel = asyncio.Event()
        cancel.set()
        operation = ScriptedOperation()

        with pytest.raises(TranslationCancelledError):
            await with_retry(operation, RetryPolicy(), sleep=recording_sleep, cancel=cancel)

        assert operation.tiers == []

    @pytest.mark.asyncio
    async def test_unset_cancel_changes_nothing(self, recording_sleep):
        operation = ScriptedOperation(errors=[rate_limited()])

        result = await with_retry(
            operation, RetryPolicy(), sleep=recording_sleep, cancel=asyncio.Event()
        )

        assert result == "ok"
        assert recording_sleep.delays == pytest.approx([0.3])
