"""Applies a retry policy to a stream of failures.

`apply_retry_policy` is the stream operator: it turns the failures of some
operation into resume signals, or re-raises the failure that ended the
sequence. `retry_when` is the caller side for plain async callables: it
re-invokes the operation on every resume.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterable, AsyncIterator, Awaitable, Callable, Optional, TypeVar

from retrystream.domain.models.decision import Delay, Resume, Terminate
from retrystream.domain.policy import RetryPolicy, RetrySequence
from retrystream.infrastructure.scheduler import AsyncioScheduler, Scheduler

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def wait_for_resume(sequence: RetrySequence, delay: Delay, scheduler: Scheduler) -> Resume:
    """Suspend until the scheduled delay fires

    If the waiting task is cancelled the timer is cancelled with it and the
    sequence is terminated, so no resume can be delivered later.
    """
    loop = asyncio.get_running_loop()
    fired = loop.create_future()

    def _fire() -> None:
        if not fired.done():
            fired.set_result(None)

    handle = scheduler.call_later(delay.seconds, _fire)
    try:
        await fired
    except asyncio.CancelledError:
        sequence.cancel()
        logger.debug(f"Pending retry {delay.attempt} cancelled")
        raise
    finally:
        handle.cancel()
    return sequence.resume()


async def apply_retry_policy(
    failures: AsyncIterable[BaseException],
    policy: RetryPolicy,
    scheduler: Optional[Scheduler] = None,
) -> AsyncIterator[Resume]:
    """Transform a failure stream into a stream of resume signals

    Args:
        failures: Failures of the monitored operation, one per failed run.
            The stream ending means the operation finally succeeded.
        policy: Retry policy to apply
        scheduler: Timer used for delays (event loop timers by default)

    Yields:
        Resume once the delay for each tolerated failure has elapsed

    Raises:
        BaseException: The original failure, once it is not eligible or the
            attempts are exhausted
    """
    scheduler = scheduler or AsyncioScheduler()
    sequence = policy.new_sequence()
    iterator = failures.__aiter__()
    try:
        async for failure in iterator:
            decision = sequence.on_failure(failure)
            if isinstance(decision, Terminate):
                raise decision.failure
            yield await wait_for_resume(sequence, decision, scheduler)
        sequence.on_success()
    finally:
        if not sequence.is_terminated:
            sequence.cancel()
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()


async def retry_when(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    scheduler: Optional[Scheduler] = None,
) -> T:
    """Run an async operation, re-invoking it as the policy allows

    Args:
        operation: Zero-argument callable returning a fresh awaitable per call
        policy: Retry policy to apply
        scheduler: Timer used for delays (event loop timers by default)

    Returns:
        The operation's result

    Raises:
        Exception: The failure that ended the sequence, unchanged
    """
    scheduler = scheduler or AsyncioScheduler()
    sequence = policy.new_sequence()
    try:
        while True:
            try:
                result = await operation()
            except Exception as e:
                decision = sequence.on_failure(e)
                if isinstance(decision, Terminate):
                    raise
            else:
                sequence.on_success()
                return result
            await wait_for_resume(sequence, decision, scheduler)
    finally:
        if not sequence.is_terminated:
            sequence.cancel()
