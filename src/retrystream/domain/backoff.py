"""Delay calculation for fixed, linear and exponential backoff.

All functions are pure and return the wait in seconds. Attempt numbers start
at 1 for the first retry.
"""

import sys
from typing import Callable, Dict, List

from retrystream.domain.config.retry import BackoffMode, RetryConfig


def fixed_delay(attempt: int, config: RetryConfig) -> float:
    """Configured delay, regardless of attempt."""
    return config.delay / 1000.0


def linear_delay(attempt: int, config: RetryConfig) -> float:
    """Configured delay times the attempt number (delay, 2*delay, ...)."""
    return config.delay * attempt / 1000.0


def exponential_delay(attempt: int, config: RetryConfig) -> float:
    """`seed * 2^attempt` seconds.

    A seed of 1 gives 2, 4, 8, 16 seconds for attempts 1..4. Seeds below 1
    shrink the curve and a seed of 0 never waits. Delays too large for a
    float saturate at sys.float_info.max.
    """
    if config.seed == 0:
        return 0.0
    try:
        delay = config.seed * 2.0**attempt
    except OverflowError:
        return sys.float_info.max
    return min(delay, sys.float_info.max)


DELAY_FUNCTIONS: Dict[str, Callable[[int, RetryConfig], float]] = {
    "fixed": fixed_delay,
    "linear": linear_delay,
    "exponential": exponential_delay,
}


def compute_delay(attempt: int, config: RetryConfig, mode: BackoffMode) -> float:
    """Compute the wait before retry number `attempt`.

    Args:
        attempt: Retry number, starting at 1
        config: Validated retry configuration
        mode: Backoff mode

    Returns:
        Delay in seconds (>= 0)
    """
    return DELAY_FUNCTIONS[mode](attempt, config)


def schedule(config: RetryConfig, mode: BackoffMode) -> List[float]:
    """Delays for every tolerated failure, in order."""
    return [compute_delay(n, config, mode) for n in range(1, config.attempts + 1)]
