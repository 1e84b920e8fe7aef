"""
Retry with exponential backoff and a mid-sequence switch to the fallback model.

Attempt sequence for the default policy (4 attempts, 0.3 s seed, fallback on
attempt 3), against a service that is always rate limited:

    attempt 1  primary   -> wait 0.3 s
    attempt 2  primary   -> wait 0.6 s
    attempt 3  fallback  -> wait 1.2 s
    attempt 4  fallback  -> RetriesExhaustedError

Only TransientUpstreamError is retried. Anything else propagates from the
attempt that raised it. Setting the optional cancel event cuts a backoff
short and stops any further attempt with TranslationCancelledError.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    stop_any,
    wait_exponential,
)

from cvtranslate.config import Settings
from cvtranslate.core.errors import (
    RetriesExhaustedError,
    TransientUpstreamError,
    TranslationCancelledError,
)
from cvtranslate.core.models import AttemptState, ModelTier


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 4
    initial_delay: float = 0.3
    fallback_attempt: int = 3  # 1-based; this attempt and later use the fallback tier

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            initial_delay=settings.retry_initial_delay,
            fallback_attempt=settings.fallback_attempt,
        )

    def tier_for(self, attempt_number: int) -> ModelTier:
        if self.fallback_attempt and attempt_number >= self.fallback_attempt:
            return ModelTier.FALLBACK
        return ModelTier.PRIMARY


async def _sleep_unless_cancelled(
    sleep: Callable[[float], Awaitable[None]],
    seconds: float,
    cancel: asyncio.Event,
) -> None:
    """Sleep for `seconds`, returning early once `cancel` is set."""
    sleeper = asyncio.ensure_future(sleep(seconds))
    waiter = asyncio.ensure_future(cancel.wait())
    _, pending = await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()


async def with_retry(
    operation: Callable[[ModelTier], Awaitable[T]],
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    state: AttemptState | None = None,
    cancel: asyncio.Event | None = None,
) -> T:
    """
    Run `operation(tier)` until it succeeds, fails permanently or runs out of attempts.

    Args:
        operation: Coroutine factory taking the model tier for this attempt
        policy: Attempt budget, backoff seed and fallback attempt
        sleep: Awaitable used between attempts (injectable for tests)
        state: Optional AttemptState updated as attempts progress
        cancel: Optional abort signal, checked before every attempt and during backoff

    Raises:
        RetriesExhaustedError: every attempt failed transiently
        TranslationCancelledError: `cancel` was set before the operation succeeded
    """
    policy = policy or RetryPolicy()
    state = state if state is not None else AttemptState()

    def record_wait(retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        state.current_delay = delay
        state.delays.append(delay)
        logger.warning(
            "Transient upstream failure on attempt %d/%d (%s tier), retrying in %.2fs: %s",
            retry_state.attempt_number,
            policy.max_attempts,
            state.model_tier.value,
            delay,
            retry_state.outcome.exception() if retry_state.outcome else None,
        )

    def cancelled(retry_state: RetryCallState) -> bool:
        return cancel is not None and cancel.is_set()

    async def backoff(seconds: float) -> None:
        if cancel is None:
            await sleep(seconds)
        else:
            await _sleep_unless_cancelled(sleep, seconds, cancel)

    retrying = AsyncRetrying(
        stop=stop_any(stop_after_attempt(policy.max_attempts), cancelled),
        wait=wait_exponential(multiplier=policy.initial_delay, exp_base=2, max=60),
        retry=retry_if_exception_type(TransientUpstreamError),
        before_sleep=record_wait,
        sleep=backoff,
    )

    try:
        async for attempt in retrying:
            with attempt:
                if cancelled(attempt.retry_state):
                    raise TranslationCancelledError("Translation cancelled")
                state.attempt_count = attempt.retry_state.attempt_number
                state.model_tier = policy.tier_for(state.attempt_count)
                return await operation(state.model_tier)
    except RetryError as e:
        last = e.last_attempt.exception()
        if cancel is not None and cancel.is_set():
            logger.info("Cancelled after %d attempts", state.attempt_count)
            raise TranslationCancelledError("Translation cancelled") from last
        logger.error("Giving up after %d attempts: %s", state.attempt_count, last)
        raise RetriesExhaustedError(state.attempt_count, last) from last

    # AsyncRetrying always returns or raises from inside the loop
    raise RetriesExhaustedError(state.attempt_count)
