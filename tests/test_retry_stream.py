"""Tests for the async stream operator and retry_when"""

from __future__ import annotations

import asyncio

import pytest

from retrystream.application.builder import RetryStrategy, with_fixed_delay, with_linear_delay
from retrystream.application.retry_stream import apply_retry_policy, retry_when


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.callback()


class FakeScheduler:
    """Records requested delays; fires timers on the next loop iteration unless told not to"""

    def __init__(self, auto_fire: bool = True):
        self.auto_fire = auto_fire
        self.timers = []

    def call_later(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        if self.auto_fire:
            asyncio.get_running_loop().call_soon(timer.fire)
        return timer

    @property
    def delays(self):
        return [timer.delay for timer in self.timers]


async def _stream(*failures):
    for failure in failures:
        yield failure


async def _collect(failures, policy, scheduler):
    resumes = []
    async for resume in apply_retry_policy(failures, policy, scheduler):
        resumes.append(resume)
    return resumes


class TestApplyRetryPolicy:
    """Tests for apply_retry_policy"""

    def test_linear_scenario(self):
        """Test resumes after 100, 200, 300ms then F4 is raised unchanged"""
        policy = with_linear_delay({"attempts": 3, "delay": 100})
        scheduler = FakeScheduler()
        failures = [ConnectionError(f"F{n}") for n in range(1, 5)]
        resumes = []

        async def consume():
            async for resume in apply_retry_policy(_stream(*failures), policy, scheduler):
                resumes.append(resume)

        with pytest.raises(ConnectionError) as exc_info:
            asyncio.run(consume())

        assert exc_info.value is failures[3]
        assert scheduler.delays == pytest.approx([0.1, 0.2, 0.3])
        assert [r.attempt for r in resumes] == [1, 2, 3]

    def test_stream_end_is_success(self):
        """Test the operator completes when the failure stream ends"""
        scheduler = FakeScheduler()
        resumes = asyncio.run(
            _collect(_stream(OSError(), OSError()), with_fixed_delay({"delay": 10}), scheduler)
        )
        assert len(resumes) == 2
        assert scheduler.delays == pytest.approx([0.01, 0.01])

    def test_ineligible_failure_raised_immediately(self):
        """Test a filtered-out failure is raised without scheduling anything"""
        policy = RetryStrategy.exception_of_types(TimeoutError).with_fixed_delay({"attempts": 5})
        scheduler = FakeScheduler()
        failure = ValueError("nope")

        with pytest.raises(ValueError) as exc_info:
            asyncio.run(_collect(_stream(failure), policy, scheduler))

        assert exc_info.value is failure
        assert scheduler.timers == []

    def test_cancel_during_delay_never_resumes(self):
        """Test cancelling the consumer cancels the timer and drops the resume"""
        policy = with_fixed_delay({"delay": 5000})
        scheduler = FakeScheduler(auto_fire=False)
        resumes = []

        async def consume():
            async for resume in apply_retry_policy(_stream(TimeoutError()), policy, scheduler):
                resumes.append(resume)

        async def main():
            task = asyncio.create_task(consume())
            while not scheduler.timers:
                await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            # A timer firing late must not resurrect the sequence
            scheduler.timers[0].callback()
            await asyncio.sleep(0)

        asyncio.run(main())

        assert scheduler.timers[0].cancelled
        assert resumes == []

    def test_closing_iterator_stops_sequence(self):
        """Test a consumer that loses interest gets no further timers scheduled"""
        scheduler = FakeScheduler()

        async def main():
            stream = apply_retry_policy(_stream(OSError(), OSError()), with_fixed_delay(), scheduler)
            first = await stream.__anext__()
            await stream.aclose()
            return first

        first = asyncio.run(main())
        assert first.attempt == 1
        assert len(scheduler.timers) == 1

    def test_upstream_closed_on_termination(self):
        """Test the failure stream is closed as soon as the sequence ends"""
        closed = []

        async def upstream():
            try:
                while True:
                    yield OSError("again")
            finally:
                closed.append(True)

        async def main():
            with pytest.raises(OSError):
                await _collect(upstream(), with_fixed_delay({"attempts": 1}), FakeScheduler())
            return list(closed)

        assert asyncio.run(main()) == [True]

    def test_upstream_closed_on_cancel(self):
        """Test cancelling during a delay closes the failure stream too"""
        closed = []
        scheduler = FakeScheduler(auto_fire=False)

        async def upstream():
            try:
                yield TimeoutError()
                yield TimeoutError()
            finally:
                closed.append(True)

        async def main():
            task = asyncio.create_task(_collect(upstream(), with_fixed_delay(), scheduler))
            while not scheduler.timers:
                await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return list(closed)

        assert asyncio.run(main()) == [True]

    def test_real_event_loop_timers(self):
        """Test the default scheduler with zero delay"""
        resumes = asyncio.run(
            _collect(_stream(OSError(), OSError()), with_fixed_delay({"delay": 0}), None)
        )
        assert [r.attempt for r in resumes] == [1, 2]


class TestRetryWhen:
    """Tests for retry_when"""

    def test_retries_until_success(self):
        """Test the operation is re-invoked after each delay"""
        calls = {"n": 0}
        scheduler = FakeScheduler()

        async def operation():
            calls["n"] += 1
            if calls["n"] < 3:
                raise ConnectionError("boom")
            return "ok"

        result = asyncio.run(retry_when(operation, with_linear_delay({"delay": 100}), scheduler))

        assert result == "ok"
        assert calls["n"] == 3
        assert scheduler.delays == pytest.approx([0.1, 0.2])

    def test_exhaustion_raises_last_failure(self):
        """Test attempts=k tolerates k failures and raises the (k+1)-th"""
        raised = []

        async def operation():
            raised.append(TimeoutError(f"attempt {len(raised) + 1}"))
            raise raised[-1]

        with pytest.raises(TimeoutError) as exc_info:
            asyncio.run(retry_when(operation, with_fixed_delay({"attempts": 2}), FakeScheduler()))

        assert len(raised) == 3
        assert exc_info.value is raised[-1]

    def test_concurrent_sequences_are_independent(self):
        """Test two operations sharing one policy keep separate attempt counts"""
        policy = with_fixed_delay({"attempts": 2, "delay": 0})
        calls = {"a": 0, "b": 0}

        def make_operation(name, failures):
            async def operation():
                calls[name] += 1
                if calls[name] <= failures:
                    raise OSError(name)
                return name

            return operation

        async def main():
            return await asyncio.gather(
                retry_when(make_operation("a", 2), policy),
                retry_when(make_operation("b", 2), policy),
            )

        assert asyncio.run(main()) == ["a", "b"]
        assert calls == {"a": 3, "b": 3}

    def test_cancel_while_waiting(self):
        """Test cancelling retry_when cancels its pending timer"""
        scheduler = FakeScheduler(auto_fire=False)
        calls = {"n": 0}

        async def operation():
            calls["n"] += 1
            raise OSError("down")

        async def main():
            task = asyncio.create_task(retry_when(operation, with_fixed_delay(), scheduler))
            while not scheduler.timers:
                await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            scheduler.timers[0].callback()
            await asyncio.sleep(0)

        asyncio.run(main())
        assert calls["n"] == 1
        assert scheduler.timers[0].cancelled
