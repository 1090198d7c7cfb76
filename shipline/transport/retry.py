"""Retry policy for batch delivery.

The policy is a pure function of ``(attempt, error)`` so it can be tested
without a network. ``build_retrying`` plugs it into tenacity's retry, stop and
wait hooks for the actual call loop.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from tenacity import RetryCallState, Retrying

from shipline.common.errors import RetryableTransportError


@dataclass(frozen=True)
class RetryPolicy:
    retries: int = 0
    retry_delay_ms: int = 1000
    retry_on: tuple[type[BaseException], ...] = (RetryableTransportError,)

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def is_retryable(self, error: BaseException | None) -> bool:
        return error is not None and isinstance(error, self.retry_on)

    def backoff_seconds(self, attempt: int) -> float:
        """Delay after the ``attempt``-th failed try (1-based), doubling each time."""
        return (self.retry_delay_ms / 1000.0) * (2 ** max(attempt - 1, 0))

    def decide(self, attempt: int, error: BaseException | None) -> float | None:
        """Return seconds to wait before the next try, or None to stop."""
        if not self.is_retryable(error):
            return None
        if attempt >= self.max_attempts:
            return None
        return self.backoff_seconds(attempt)


def _last_error(retry_state: RetryCallState) -> BaseException | None:
    outcome = retry_state.outcome
    if outcome is None or not outcome.failed:
        return None
    return outcome.exception()


def build_retrying(
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
    before_sleep: Callable[[RetryCallState], None] | None = None,
) -> Retrying:
    def _retry(retry_state: RetryCallState) -> bool:
        return policy.is_retryable(_last_error(retry_state))

    def _stop(retry_state: RetryCallState) -> bool:
        return policy.decide(retry_state.attempt_number, _last_error(retry_state)) is None

    def _wait(retry_state: RetryCallState) -> float:
        return policy.decide(retry_state.attempt_number, _last_error(retry_state)) or 0.0

    return Retrying(
        retry=_retry,
        stop=_stop,
        wait=_wait,
        sleep=sleep,
        before_sleep=before_sleep,
        reraise=True,
    )
