"""Attempt counting for a single retry sequence"""

from dataclasses import dataclass

from retrystream.domain.config.retry import RetryConfig


@dataclass
class AttemptState:
    """Failures counted so far in one sequence. Never shared between sequences."""

    count: int = 0


class AttemptLimiter:
    """Decides whether a sequence still has attempts left"""

    def __init__(self, config: RetryConfig):
        self.config = config

    def record_attempt(self, state: AttemptState) -> int:
        """Count one more eligible failure

        Returns:
            The new attempt number
        """
        state.count += 1
        return state.count

    def should_retry(self, state: AttemptState) -> bool:
        """Check the (already incremented) count against the ceiling"""
        return state.count <= self.config.attempts
