"""Retry policies for asynchronous, stream-based operations."""

from retrystream.application.builder import (
    RetryStrategy,
    build_policy,
    parse_retry_config,
    with_exponential_delay,
    with_fixed_delay,
    with_linear_delay,
)
from retrystream.application.retry_stream import apply_retry_policy, retry_when
from retrystream.domain.config import RetryConfig
from retrystream.domain.errors import ConfigurationError, InvalidTransitionError
from retrystream.domain.failure_filter import FailureFilter
from retrystream.domain.models.decision import (
    Delay,
    Resume,
    RetryDecision,
    Terminate,
    TerminationReason,
)
from retrystream.domain.policy import RetryPolicy, RetrySequence, SequenceState

__all__ = [
    "RetryStrategy",
    "build_policy",
    "parse_retry_config",
    "with_fixed_delay",
    "with_linear_delay",
    "with_exponential_delay",
    "apply_retry_policy",
    "retry_when",
    "RetryConfig",
    "ConfigurationError",
    "InvalidTransitionError",
    "FailureFilter",
    "Delay",
    "Resume",
    "RetryDecision",
    "Terminate",
    "TerminationReason",
    "RetryPolicy",
    "RetrySequence",
    "SequenceState",
]
