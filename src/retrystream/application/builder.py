"""Builds retry policies from configuration mappings.

Typical usage:

    policy = (
        RetryStrategy.exception_of_types(TimeoutError, ConnectionError)
        .with_linear_delay({"attempts": 3, "delay": 100})
    )
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Union

from pydantic import ValidationError

from retrystream.domain.config.retry import BACKOFF_MODES, BackoffMode, RetryConfig
from retrystream.domain.errors import ConfigurationError
from retrystream.domain.failure_filter import FailureFilter, FailureKind
from retrystream.domain.policy import RetryPolicy

logger = logging.getLogger(__name__)

ConfigSource = Union[Mapping[str, Any], RetryConfig, None]


def format_validation_error(error: ValidationError, prefix: str = "") -> str:
    """Render pydantic errors as one line per field"""
    errors = []
    for item in error.errors():
        field = ".".join(str(x) for x in (prefix, *item["loc"]) if x != "")
        errors.append(f"  - {field}: {item['msg']}")
    return "\n".join(errors)


def parse_retry_config(config: ConfigSource = None) -> RetryConfig:
    """Validate a configuration mapping

    Recognized keys are `attempts`, `delay` and `seed`; anything else is
    ignored.

    Args:
        config: Mapping, existing RetryConfig or None for defaults

    Returns:
        Validated RetryConfig

    Raises:
        ConfigurationError: If a recognized value is invalid
    """
    if isinstance(config, RetryConfig):
        return config
    if config is None:
        return RetryConfig()
    if not isinstance(config, Mapping):
        raise ConfigurationError(f"Retry configuration must be a mapping, got {type(config).__name__}")
    try:
        return RetryConfig.model_validate(dict(config))
    except ValidationError as e:
        raise ConfigurationError(
            "Retry configuration validation failed:\n" + format_validation_error(e)
        ) from e


def build_policy(
    mode: str,
    config: ConfigSource = None,
    kinds: Iterable[FailureKind] = (),
    excluded: Iterable[FailureKind] = (),
) -> RetryPolicy:
    """Create a retry policy

    Args:
        mode: fixed, linear or exponential
        config: Configuration mapping (defaults apply for missing keys)
        kinds: Failure kinds eligible for retry (empty = all)
        excluded: Failure kinds never retried

    Returns:
        RetryPolicy instance

    Raises:
        ConfigurationError: If the mode or any value is invalid
    """
    mode_lower = str(mode).lower()
    if mode_lower not in BACKOFF_MODES:
        available = ", ".join(BACKOFF_MODES)
        raise ConfigurationError(f"Unknown backoff mode: {mode}. Available modes: {available}")

    retry_config = parse_retry_config(config)
    try:
        failure_filter = FailureFilter(kinds, excluded)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid failure kinds: {e}") from e

    policy = RetryPolicy(retry_config, mode_lower, failure_filter)
    logger.debug(f"Built {policy!r}")
    return policy


class RetryStrategy:
    """Fluent builder for the common retry setups"""

    def __init__(self, kinds: Iterable[FailureKind] = (), excluded: Iterable[FailureKind] = ()):
        self.kinds = tuple(kinds)
        self.excluded = tuple(excluded)

    @classmethod
    def exception_of_types(cls, *kinds: FailureKind) -> RetryStrategy:
        """Only retry failures of the given kinds"""
        return cls(kinds)

    def excluding(self, *kinds: FailureKind) -> RetryStrategy:
        """Never retry failures of the given kinds"""
        return RetryStrategy(self.kinds, self.excluded + kinds)

    def build(self, mode: BackoffMode, config: ConfigSource = None) -> RetryPolicy:
        return build_policy(mode, config, self.kinds, self.excluded)

    def with_fixed_delay(self, config: ConfigSource = None) -> RetryPolicy:
        """Wait `delay` ms (default 1000) before every retry, `attempts` times (default 3)"""
        return self.build("fixed", config)

    def with_linear_delay(self, config: ConfigSource = None) -> RetryPolicy:
        """Wait `delay * attempt` ms, so 100 and 200 ms for delay=100"""
        return self.build("linear", config)

    def with_exponential_delay(self, config: ConfigSource = None) -> RetryPolicy:
        """Wait `seed * 2^attempt` seconds; seed defaults to 1 (2, 4, 8, ... s)"""
        return self.build("exponential", config)

    def __repr__(self) -> str:
        return f"RetryStrategy(kinds={self.kinds!r}, excluded={self.excluded!r})"


def with_fixed_delay(config: ConfigSource = None) -> RetryPolicy:
    return RetryStrategy().with_fixed_delay(config)


def with_linear_delay(config: ConfigSource = None) -> RetryPolicy:
    return RetryStrategy().with_linear_delay(config)


def with_exponential_delay(config: ConfigSource = None) -> RetryPolicy:
    return RetryStrategy().with_exponential_delay(config)
