"""RetryDecision model - what a policy decided for one failure"""

from dataclasses import dataclass
from enum import Enum
from typing import Union


class TerminationReason(str, Enum):
    """Why a sequence stopped retrying"""

    INELIGIBLE = "ineligible"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class Delay:
    """Resume the operation after `seconds` have elapsed"""

    seconds: float
    attempt: int

    @property
    def milliseconds(self) -> float:
        return self.seconds * 1000.0


@dataclass(frozen=True)
class Terminate:
    """Stop retrying and propagate the original failure"""

    failure: BaseException
    reason: TerminationReason
    attempt: int


@dataclass(frozen=True)
class Resume:
    """Signal that the underlying operation should be re-invoked"""

    attempt: int
    delay: float


RetryDecision = Union[Delay, Terminate]
