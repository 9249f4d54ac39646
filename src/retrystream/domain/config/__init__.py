"""Configuration models with Pydantic validation."""

from retrystream.domain.config.app import AppConfig, PolicyConfig
from retrystream.domain.config.retry import BACKOFF_MODES, BackoffMode, RetryConfig

__all__ = [
    "AppConfig",
    "PolicyConfig",
    "RetryConfig",
    "BackoffMode",
    "BACKOFF_MODES",
]
