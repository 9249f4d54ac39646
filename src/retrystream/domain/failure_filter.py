"""Failure eligibility filtering"""

import logging
from typing import Iterable, Tuple, Type, Union

logger = logging.getLogger(__name__)

FailureKind = Union[Type[BaseException], str]


def _normalize(kinds: Iterable[FailureKind]) -> Tuple[FailureKind, ...]:
    normalized = []
    for kind in kinds:
        if isinstance(kind, str):
            if not kind.strip():
                raise ValueError("Failure kind must not be empty")
            normalized.append(kind.strip())
        elif isinstance(kind, type) and issubclass(kind, BaseException):
            normalized.append(kind)
        else:
            raise TypeError(f"Failure kind must be an exception class or a name, got {kind!r}")
    return tuple(normalized)


def _matches(failure: BaseException, kind: FailureKind) -> bool:
    if isinstance(kind, str):
        # Names match anywhere in the MRO so a parent kind covers its subclasses
        for cls in type(failure).__mro__:
            if kind in (cls.__name__, f"{cls.__module__}.{cls.__qualname__}"):
                return True
        return False
    return isinstance(failure, kind)


class FailureFilter:
    """Restricts which failures may be retried.

    Kinds are exception classes (matched with isinstance) or class names,
    either bare (``"TimeoutError"``) or dotted (``"mypkg.errors.Busy"``).
    With no kinds configured every failure is eligible. Excluded kinds are
    never eligible.
    """

    def __init__(self, kinds: Iterable[FailureKind] = (), excluded: Iterable[FailureKind] = ()):
        self._kinds = _normalize(kinds)
        self._excluded = _normalize(excluded)

    @property
    def kinds(self) -> Tuple[FailureKind, ...]:
        return self._kinds

    @property
    def excluded(self) -> Tuple[FailureKind, ...]:
        return self._excluded

    @property
    def is_empty(self) -> bool:
        return not self._kinds and not self._excluded

    def eligible(self, failure: BaseException) -> bool:
        """Check whether a failure may be retried at all"""
        if self.is_empty:
            return True
        if any(_matches(failure, kind) for kind in self._excluded):
            logger.debug(f"{type(failure).__name__} is excluded from retries")
            return False
        if not self._kinds:
            return True
        return any(_matches(failure, kind) for kind in self._kinds)

    def __repr__(self) -> str:
        return f"FailureFilter(kinds={self._kinds!r}, excluded={self._excluded!r})"
