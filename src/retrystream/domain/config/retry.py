"""Retry configuration model."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

BackoffMode = Literal["fixed", "linear", "exponential"]

BACKOFF_MODES = ("fixed", "linear", "exponential")


class RetryConfig(BaseModel):
    """Configuration for a retry policy.

    Attributes:
        attempts: Number of failures tolerated before terminating
        delay: Base delay in milliseconds (fixed and linear backoff)
        seed: Base delay in seconds (exponential backoff, may be below 1)
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    attempts: int = Field(3, ge=1)
    delay: int = Field(1000, ge=0)
    seed: float = Field(1.0, ge=0.0, allow_inf_nan=False)

    @field_validator("attempts", "delay", "seed", mode="before")
    @classmethod
    def reject_booleans(cls, value: Any) -> Any:
        # bool is an int subclass and lax mode would read True as 1
        if isinstance(value, bool):
            raise ValueError("must be a number, not a boolean")
        return value
