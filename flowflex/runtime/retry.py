"""Retry policies and the generic retrying executor.

A `RetryPolicy` is plain data. `execute_with_retry()` is the only place that
interprets it, for activities run by the local worker and for the Gateway's
calls into its backend. The Temporal backend translates the same policy into
Temporal's own retry policy.

Example:
    result = await execute_with_retry(
        lambda: send(message),
        DEFAULT_RETRY,
        name='send_template_message',
        start_to_close_timeout=60,
    )
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, NoReturn, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from flowflex.runtime.errors import ActivityError, ActivityFatalError, ActivityTransientError
from flowflex.runtime.schemas import ActivityAttempt, AttemptOutcome, utcnow

logger = logging.getLogger('runtime.retry')

T = TypeVar('T')


class RetryPolicy(BaseModel):
    """Bounded exponential backoff.

    The delay before attempt n+1 is
    `min(initial_interval * backoff_coefficient ** (n - 1), maximum_interval)`.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(3, ge=1, description='Total attempts including the first')
    initial_interval: float = Field(1.0, gt=0, description='Delay before the first retry (s)')
    maximum_interval: float = Field(10.0, gt=0, description='Upper bound of any delay (s)')
    backoff_coefficient: float = Field(2.0, ge=1.0, description='Growth factor between delays')

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed attempt number `attempt` (1-based)."""
        delay = self.initial_interval * self.backoff_coefficient ** (attempt - 1)
        return min(delay, self.maximum_interval)

    def backoff_schedule(self) -> list[float]:
        return [self.delay_for(attempt) for attempt in range(1, self.max_attempts)]


# Standard retry policies
DEFAULT_RETRY = RetryPolicy()

NO_RETRY = RetryPolicy(max_attempts=1)

GATEWAY_RETRY = RetryPolicy(
    max_attempts=2,
    initial_interval=0.5,
    maximum_interval=2.0,
)


def classify_exception(exc: BaseException) -> ActivityError:
    """Map an exception raised by an attempt onto the activity error taxonomy.

    Activities classify their own failures; anything they did not classify is
    treated as transient.
    """
    if isinstance(exc, ActivityError):
        return exc
    if isinstance(exc, asyncio.TimeoutError):
        return ActivityTransientError(f'Attempt timed out: {exc}' if str(exc) else 'Attempt timed out')
    return ActivityTransientError(f'{type(exc).__name__}: {exc}')


async def execute_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    name: str = 'activity',
    start_to_close_timeout: float | None = None,
    non_retryable: tuple[type[BaseException], ...] = (),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_attempt: Callable[[ActivityAttempt], None] | None = None,
) -> T:
    """Run `fn` until it succeeds, fails fatally or runs out of attempts.

    Args:
        fn: Zero-argument coroutine factory; called once per attempt
        policy: Retry policy to apply
        name: Name used in logs and attempt records
        start_to_close_timeout: Hard wall-clock bound per attempt (s); exceeding
            it cancels the attempt and counts as a transient failure
        non_retryable: Exception types re-raised unchanged on first occurrence
        sleep: Awaitable used for backoff delays
        on_attempt: Callback receiving an ActivityAttempt record per attempt

    Returns:
        The value returned by the successful attempt

    Raises:
        ActivityFatalError: On the first fatal failure
        ActivityTransientError: When the last attempt failed transiently
    """
    schedule = policy.backoff_schedule()

    def record(attempt: int, started_at: datetime, outcome: AttemptOutcome, **fields: Any) -> None:
        if on_attempt is None:
            return
        on_attempt(
            ActivityAttempt(
                activity_name=name,
                attempt_number=attempt,
                max_attempts=policy.max_attempts,
                backoff_schedule=schedule,
                start_to_close_timeout=start_to_close_timeout or 0.0,
                outcome=outcome,
                started_at=started_at,
                finished_at=utcnow(),
                **fields,
            )
        )

    for attempt in range(1, policy.max_attempts + 1):
        started_at = utcnow()
        try:
            if start_to_close_timeout:
                result = await asyncio.wait_for(fn(), timeout=start_to_close_timeout)
            else:
                result = await fn()
        except non_retryable:
            raise
        except Exception as e:
            if isinstance(e, asyncio.TimeoutError) and start_to_close_timeout:
                error = ActivityTransientError(f'{name} exceeded start-to-close timeout of {start_to_close_timeout}s')
            else:
                error = classify_exception(e)
            error.activity_name = error.activity_name or name
            error.attempts = attempt

            if isinstance(error, ActivityFatalError):
                record(attempt, started_at, AttemptOutcome.FATAL_FAILURE, error=error.message)
                logger.warning(f'{name}: attempt {attempt}/{policy.max_attempts} failed fatally: {error.message}')
                _reraise(error, e)

            record(attempt, started_at, AttemptOutcome.TRANSIENT_FAILURE, error=error.message)

            if attempt >= policy.max_attempts:
                logger.warning(f'{name}: giving up after {attempt} attempts: {error.message}')
                _reraise(error, e)

            delay = policy.delay_for(attempt)
            logger.info(
                f'{name}: attempt {attempt}/{policy.max_attempts} failed transiently '
                f'({error.message}); retrying in {delay:.2f}s'
            )
            await sleep(delay)
            continue

        record(attempt, started_at, AttemptOutcome.SUCCESS, result=result)
        return result

    # max_attempts >= 1, so the loop always returns or raises
    raise AssertionError('unreachable')


def _reraise(error: ActivityError, original: Exception) -> NoReturn:
    if error is original:
        raise error
    raise error from original
