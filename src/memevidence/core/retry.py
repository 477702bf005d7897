"""Retry with capped exponential backoff.

Two flavours share one backoff policy:
- ``retry`` wraps a thunk that raises; the last exception is re-raised.
- ``retry_result`` wraps a thunk returning a Result; fatal errors stop
  immediately and the last error is returned after exhaustion.

Delay starts at ``initial_delay`` seconds and doubles after every failed
attempt up to ``max_delay``. Failures are only logged once the attempt
number exceeds ``log_threshold`` so that routine retries stay quiet.

Both helpers are thin tenacity ``Retrying`` loops; the policy also exposes
its schedule as a plain generator for loops that interleave other work
between attempts.

Public API:
    BackoffPolicy: Delay schedule and logging threshold
    retry: Retry a raising callable
    retry_result: Retry a Result-returning callable
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_not_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from .result import Result

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BackoffPolicy:
    """Backoff schedule shared by both retry helpers."""

    initial_delay: float = 1.0
    max_delay: float = 20.0
    log_threshold: int = 10

    def wait(self) -> wait_exponential:
        return wait_exponential(multiplier=self.initial_delay, max=self.max_delay)

    def delays(self):
        """Yield the delay to sleep after attempt 1, 2, 3, ..."""
        delay = self.initial_delay
        while True:
            yield delay
            delay = min(delay * 2, self.max_delay)

    def log_failure(self, state: RetryCallState) -> None:
        if state.attempt_number <= self.log_threshold:
            return
        outcome = state.outcome
        if outcome is None:
            return
        reason = outcome.exception() if outcome.failed else outcome.result().error
        logger.warning("Attempt %d failed: %s", state.attempt_number, reason)


def _is_retryable(result: Result) -> bool:
    return not result.ok and not (result.error is not None and result.error.is_fatal)


def retry(
    fn: Callable[[], T],
    max_attempts: int,
    policy: BackoffPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
    give_up: tuple[type[BaseException], ...] = (),
) -> T:
    """Call ``fn`` until it returns, at most ``max_attempts`` times.

    Args:
        fn: Zero-argument callable that raises on failure
        max_attempts: Total attempts including the first (>= 1)
        policy: Backoff schedule (defaults to 1s doubling up to 20s)
        sleep: Injected for tests
        give_up: Exception types re-raised at once without retrying

    Returns:
        Whatever ``fn`` returns on its first successful call.

    Raises:
        The exception from the final attempt once all attempts fail.
    """
    policy = policy or BackoffPolicy()
    retrying = Retrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=policy.wait(),
        retry=retry_if_not_exception_type(give_up),
        after=policy.log_failure,
        sleep=sleep,
        reraise=True,
    )
    return retrying(fn)


def retry_result(
    fn: Callable[[], Result[T]],
    max_attempts: int,
    policy: BackoffPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Result[T]:
    """Call ``fn`` until it returns an ok Result or a fatal error.

    Args:
        fn: Zero-argument callable returning a Result
        max_attempts: Total attempts including the first (>= 1)
        policy: Backoff schedule
        sleep: Injected for tests

    Returns:
        The first ok Result, the first fatal Result, or the last transient
        failure after ``max_attempts`` attempts.
    """
    policy = policy or BackoffPolicy()
    retrying = Retrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=policy.wait(),
        retry=retry_if_result(_is_retryable),
        after=policy.log_failure,
        sleep=sleep,
        retry_error_callback=lambda state: state.outcome.result(),
    )
    return retrying(fn)


__all__ = ["BackoffPolicy", "retry", "retry_result"]
