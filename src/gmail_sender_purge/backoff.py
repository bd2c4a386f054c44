"""Rate-limit aware retry for Gmail API calls."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from googleapiclient.errors import HttpError
from tenacity import RetryCallState, Retrying, retry_if_exception

from .constants import (
    BASE_DELAY,
    HARD_QUOTA_SIGNATURE,
    MAX_BACKOFF,
    MAX_RETRIES,
    QUOTA_ERROR_SIGNATURES,
    QUOTA_RESET_DELAY,
    RATE_LIMIT_STATUSES,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_quota_error(exc: BaseException) -> bool:
    """Return True when *exc* signals a quota or rate-limit condition."""
    if isinstance(exc, HttpError) and exc.resp.status in RATE_LIMIT_STATUSES:
        return True
    message = str(exc)
    return any(signature in message for signature in QUOTA_ERROR_SIGNATURES)


def is_hard_quota_error(exc: BaseException) -> bool:
    return HARD_QUOTA_SIGNATURE in str(exc)


class BackoffController:
    """Retry a zero-argument remote call while it fails with quota errors.

    A hard "Quota exceeded" error waits ``quota_reset_delay``; any other quota
    error waits ``min(base_delay * 2**attempt, max_backoff)`` where ``attempt``
    counts the failures before the current one.  After ``max_retries`` quota
    failures, or on the first non-quota failure, the original exception is
    re-raised.

    With ``max_elapsed`` set, waits are cut short so that no retry starts
    after the deadline, and the first failure at or past it is re-raised.
    """

    def __init__(
        self,
        max_retries: int = MAX_RETRIES,
        base_delay: float = BASE_DELAY,
        max_backoff: float = MAX_BACKOFF,
        quota_reset_delay: float = QUOTA_RESET_DELAY,
        max_elapsed: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_backoff = max_backoff
        self.quota_reset_delay = quota_reset_delay
        self.max_elapsed = max_elapsed
        self._sleep = sleep

    def compute_delay(self, exc: BaseException, attempt_count: int) -> float:
        if is_hard_quota_error(exc):
            return self.quota_reset_delay
        return min(self.base_delay * 2**attempt_count, self.max_backoff)

    def cap_to_deadline(self, delay: float, elapsed: float) -> float:
        if self.max_elapsed is None:
            return delay
        return max(0.0, min(delay, self.max_elapsed - elapsed))

    def _wait(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception()
        delay = self.compute_delay(exc, retry_state.attempt_number - 1)
        return self.cap_to_deadline(delay, retry_state.seconds_since_start or 0.0)

    def _stop(self, retry_state: RetryCallState) -> bool:
        if retry_state.attempt_number >= self.max_retries:
            return True
        if self.max_elapsed is None:
            return False
        return (retry_state.seconds_since_start or 0.0) >= self.max_elapsed

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep
        attempt = retry_state.attempt_number
        logger.warning(
            "Rate limit hit (%s). Waiting %.0f seconds before retry %d/%d (%d remaining)...",
            retry_state.outcome.exception(),
            delay,
            attempt,
            self.max_retries - 1,
            self.max_retries - 1 - attempt,
        )

    def execute(self, operation: Callable[[], T]) -> T:
        """Run *operation*, retrying quota failures with backoff."""
        retrying = Retrying(
            retry=retry_if_exception(is_quota_error),
            stop=self._stop,
            wait=self._wait,
            before_sleep=self._before_sleep,
            sleep=self._sleep,
            reraise=True,
        )
        return retrying(operation)
