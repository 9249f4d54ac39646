"""Retry policy and the per-sequence state machine.

A RetryPolicy is immutable and can be shared freely. Every independent retry
sequence gets its own RetrySequence (and therefore its own attempt counter)
from RetryPolicy.new_sequence().
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List

from retrystream.domain.backoff import DELAY_FUNCTIONS, compute_delay, schedule
from retrystream.domain.config.retry import BackoffMode, RetryConfig
from retrystream.domain.errors import ConfigurationError, InvalidTransitionError
from retrystream.domain.failure_filter import FailureFilter
from retrystream.domain.limiter import AttemptLimiter, AttemptState
from retrystream.domain.models.decision import (
    Delay,
    Resume,
    RetryDecision,
    Terminate,
    TerminationReason,
)

logger = logging.getLogger(__name__)


class SequenceState(str, Enum):
    ACTIVE = "active"
    AWAITING_DELAY = "awaiting_delay"
    TERMINATED = "terminated"


class RetryPolicy:
    """Composition of a backoff mode, an attempt ceiling and a failure filter"""

    def __init__(
        self,
        config: RetryConfig,
        mode: BackoffMode,
        failure_filter: FailureFilter | None = None,
    ):
        if mode not in DELAY_FUNCTIONS:
            raise ConfigurationError(f"Unknown backoff mode: {mode}")
        self._config = config
        self._mode = mode
        self._filter = failure_filter or FailureFilter()
        self._limiter = AttemptLimiter(config)

    @property
    def config(self) -> RetryConfig:
        return self._config

    @property
    def mode(self) -> BackoffMode:
        return self._mode

    @property
    def failure_filter(self) -> FailureFilter:
        return self._filter

    @property
    def limiter(self) -> AttemptLimiter:
        return self._limiter

    @property
    def attempts(self) -> int:
        return self._config.attempts

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait before retry number `attempt`"""
        return compute_delay(attempt, self._config, self._mode)

    def schedule(self) -> List[float]:
        """Every delay this policy can produce, in order"""
        return schedule(self._config, self._mode)

    def eligible(self, failure: BaseException) -> bool:
        return self._filter.eligible(failure)

    def new_sequence(self) -> RetrySequence:
        """Start an independent retry sequence with a fresh attempt counter"""
        return RetrySequence(self)

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(mode={self._mode!r}, attempts={self._config.attempts}, "
            f"delay={self._config.delay}, seed={self._config.seed}, filter={self._filter!r})"
        )


class RetrySequence:
    """State machine for one retry sequence.

    States move ACTIVE -> AWAITING_DELAY -> ACTIVE for every tolerated
    failure and end in TERMINATED, either through a terminal failure, a
    success or a cancellation. A terminated sequence accepts nothing else.
    """

    def __init__(self, policy: RetryPolicy):
        self._policy = policy
        self._attempts = AttemptState()
        self._state = SequenceState.ACTIVE
        self._pending: Delay | None = None

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def state(self) -> SequenceState:
        return self._state

    @property
    def attempts(self) -> int:
        """Eligible failures observed so far"""
        return self._attempts.count

    @property
    def is_terminated(self) -> bool:
        return self._state is SequenceState.TERMINATED

    def _require(self, expected: SequenceState, action: str) -> None:
        if self._state is not expected:
            raise InvalidTransitionError(
                f"Cannot {action} a retry sequence in state '{self._state.value}'"
            )

    def on_failure(self, failure: BaseException) -> RetryDecision:
        """Decide what to do with a failure of the underlying operation

        Args:
            failure: The exception raised by the operation

        Returns:
            Delay if the operation should be retried, Terminate otherwise

        Raises:
            InvalidTransitionError: If the sequence is not ACTIVE
        """
        self._require(SequenceState.ACTIVE, "report a failure to")

        if not self._policy.eligible(failure):
            logger.info(f"Not retrying {type(failure).__name__}: failure kind is not eligible")
            return self._terminate(failure, TerminationReason.INELIGIBLE)

        limiter = self._policy.limiter
        attempt = limiter.record_attempt(self._attempts)
        if not limiter.should_retry(self._attempts):
            logger.error(
                f"Giving up after {self._policy.attempts} attempts: "
                f"{type(failure).__name__}: {failure}"
            )
            return self._terminate(failure, TerminationReason.EXHAUSTED)

        delay = Delay(seconds=self._policy.delay_for(attempt), attempt=attempt)
        self._pending = delay
        self._state = SequenceState.AWAITING_DELAY
        logger.warning(
            f"Retrying after {type(failure).__name__} "
            f"(attempt {attempt}/{self._policy.attempts}) in {delay.seconds:.3f}s"
        )
        return delay

    def resume(self) -> Resume:
        """Mark the scheduled delay as elapsed"""
        self._require(SequenceState.AWAITING_DELAY, "resume")
        delay = self._pending
        self._pending = None
        self._state = SequenceState.ACTIVE
        logger.debug(f"Resuming after attempt {delay.attempt}")
        return Resume(attempt=delay.attempt, delay=delay.seconds)

    def on_success(self) -> None:
        """The underlying operation completed, nothing left to retry"""
        self._require(SequenceState.ACTIVE, "complete")
        self._state = SequenceState.TERMINATED
        logger.debug(f"Sequence completed after {self._attempts.count} retries")

    def cancel(self) -> bool:
        """Abandon the sequence

        Returns:
            True if a scheduled resume was dropped
        """
        dropped = self._state is SequenceState.AWAITING_DELAY
        if self._state is not SequenceState.TERMINATED:
            logger.debug(f"Sequence cancelled in state '{self._state.value}'")
        self._pending = None
        self._state = SequenceState.TERMINATED
        return dropped

    def _terminate(self, failure: BaseException, reason: TerminationReason) -> Terminate:
        self._state = SequenceState.TERMINATED
        return Terminate(failure=failure, reason=reason, attempt=self._attempts.count)
