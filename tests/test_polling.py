"""Tests for poll_until."""

import pytest

from chatforge.polling import PollPolicy, PollState, poll_until


class FakeTime:
    """A clock that only advances when sleeping or when a check takes time."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def scripted(states, fake: FakeTime | None = None, check_latency: float = 0.0):
    """A check that returns the given states in order, then repeats the last."""
    calls = {"n": 0}

    async def check():
        index = min(calls["n"], len(states) - 1)
        calls["n"] += 1
        if fake is not None:
            fake.now += check_latency
        return states[index], f"payload-{index}"

    return check


class TestPollPolicy:
    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            PollPolicy(interval=0, timeout=10)

    def test_timeout_must_be_non_negative(self):
        with pytest.raises(ValueError):
            PollPolicy(interval=1, timeout=-1)


class TestPollUntil:
    """Tests for the polling loop."""

    @pytest.mark.asyncio
    async def test_completes(self):
        """Polling stops at the first terminal state."""
        fake = FakeTime()
        check = scripted([PollState.POLLING, PollState.POLLING, PollState.COMPLETED])

        outcome = await poll_until(
            check, PollPolicy(interval=3, timeout=300), clock=fake.clock, sleep=fake.sleep
        )

        assert outcome.state is PollState.COMPLETED
        assert outcome.payload == "payload-2"
        assert outcome.attempts == 3
        assert fake.sleeps == [3, 3]

    @pytest.mark.asyncio
    async def test_failed_is_terminal(self):
        fake = FakeTime()
        check = scripted([PollState.POLLING, PollState.FAILED])

        outcome = await poll_until(
            check, PollPolicy(interval=3, timeout=300), clock=fake.clock, sleep=fake.sleep
        )

        assert outcome.state is PollState.FAILED
        assert outcome.attempts == 2

    @pytest.mark.asyncio
    async def test_cancelled_is_terminal(self):
        fake = FakeTime()
        outcome = await poll_until(
            scripted([PollState.CANCELLED]),
            PollPolicy(interval=3, timeout=300),
            clock=fake.clock,
            sleep=fake.sleep,
        )
        assert outcome.state is PollState.CANCELLED
        assert fake.sleeps == []

    @pytest.mark.asyncio
    async def test_times_out_within_one_interval(self):
        """A job that never finishes is reported TIMED_OUT by ceiling + one interval."""
        fake = FakeTime()
        policy = PollPolicy(interval=3, timeout=10)

        outcome = await poll_until(
            scripted([PollState.POLLING]), policy, clock=fake.clock, sleep=fake.sleep
        )

        assert outcome.state is PollState.TIMED_OUT
        assert outcome.elapsed >= policy.timeout
        assert fake.now <= policy.timeout + policy.interval

    @pytest.mark.asyncio
    async def test_slow_checks_count_towards_timeout(self):
        """Elapsed time, not the number of polls, bounds the loop."""
        fake = FakeTime()
        policy = PollPolicy(interval=3, timeout=20)

        outcome = await poll_until(
            scripted([PollState.POLLING], fake, check_latency=7),
            policy,
            clock=fake.clock,
            sleep=fake.sleep,
        )

        assert outcome.state is PollState.TIMED_OUT
        assert outcome.attempts == 3
        assert fake.now <= policy.timeout + policy.interval + 7

    @pytest.mark.asyncio
    async def test_max_attempts(self):
        fake = FakeTime()
        outcome = await poll_until(
            scripted([PollState.POLLING]),
            PollPolicy(interval=1, timeout=1000, max_attempts=4),
            clock=fake.clock,
            sleep=fake.sleep,
        )
        assert outcome.state is PollState.TIMED_OUT
        assert outcome.attempts == 4

    @pytest.mark.asyncio
    async def test_check_errors_propagate(self):
        async def check():
            raise RuntimeError("network down")

        with pytest.raises(RuntimeError):
            await poll_until(check, PollPolicy(interval=1, timeout=10))


class TestPollState:
    def test_terminal_states(self):
        assert not PollState.SUBMITTED.is_terminal
        assert not PollState.POLLING.is_terminal
        assert PollState.COMPLETED.is_terminal
        assert PollState.TIMED_OUT.is_terminal
