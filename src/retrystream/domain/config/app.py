"""Main application configuration model."""

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field

from retrystream.domain.config.retry import BackoffMode, RetryConfig


class PolicyConfig(RetryConfig):
    """Configuration for one named retry policy.

    Attributes:
        mode: Backoff mode (fixed, linear or exponential)
        retry_on: Failure kinds eligible for retry (empty = all)
        exclude: Failure kinds never retried
    """

    mode: BackoffMode = "fixed"
    retry_on: List[str] = Field(default_factory=list)
    exclude: List[str] = Field(default_factory=list)


class AppConfig(BaseModel):
    """Root configuration loaded from .retrystream.yml.

    Attributes:
        defaults: Values used by policies that do not set them
        policies: Named retry policies
    """

    defaults: RetryConfig = Field(default_factory=RetryConfig)
    policies: Dict[str, PolicyConfig] = Field(default_factory=dict)

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "defaults": {"attempts": 3, "delay": 1000, "seed": 1.0},
                "policies": {
                    "upload": {
                        "mode": "linear",
                        "attempts": 3,
                        "delay": 100,
                        "retry_on": ["TimeoutError", "ConnectionError"],
                    },
                    "indexer": {
                        "mode": "exponential",
                        "seed": 0.5,
                        "exclude": ["PermissionError"],
                    },
                },
            }
        },
    )
