"""Tenacity integration for retry policies.

Lets a RetryPolicy drive tenacity's `retry` decorator, so plain functions and
coroutines can be retried with the same schedule, ceiling and filter as the
stream operator.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from retrystream.domain.policy import RetryPolicy

logger = logging.getLogger(__name__)


class PolicyWait(wait_base):
    """Tenacity wait strategy computing delays from a RetryPolicy"""

    def __init__(self, policy: RetryPolicy):
        self.policy = policy

    def __call__(self, retry_state: RetryCallState) -> float:
        # attempt_number counts failed calls so far, which is our retry number
        return self.policy.delay_for(retry_state.attempt_number)


def _before_sleep_log(policy: RetryPolicy) -> Callable[[RetryCallState], None]:
    def _log(retry_state: RetryCallState) -> None:
        if retry_state.outcome is None:
            return
        exception = retry_state.outcome.exception()
        attempt = retry_state.attempt_number
        wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"{type(exception).__name__} (attempt {attempt}/{policy.attempts}): {exception}. "
            f"Retrying in {wait:.3f}s..."
        )

    return _log


def create_retry_decorator(
    policy: RetryPolicy,
    before_sleep: Optional[Callable[[RetryCallState], None]] = None,
    sleep: Optional[Callable[[float], Any]] = None,
) -> Callable[[Callable], Callable]:
    """Create a tenacity retry decorator from a policy

    The decorated callable runs once plus up to `policy.attempts` retries.
    Failures the policy does not consider eligible propagate immediately and
    the last failure is re-raised unchanged once attempts run out.

    Args:
        policy: Retry policy
        before_sleep: Optional callback before sleep (defaults to logging)
        sleep: Optional sleep function (sync for functions, async for coroutines)

    Returns:
        Retry decorator
    """
    if before_sleep is None:
        before_sleep = _before_sleep_log(policy)

    options = dict(
        stop=stop_after_attempt(policy.attempts + 1),
        wait=PolicyWait(policy),
        retry=retry_if_exception(policy.eligible),
        reraise=True,
        before_sleep=before_sleep,
    )
    if sleep is not None:
        options["sleep"] = sleep

    def decorator(func: Callable) -> Callable:
        return retry(**options)(func)

    return decorator
