"""Fixed-interval polling bounded by elapsed time."""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class PollState(Enum):
    """States of a polled job."""

    SUBMITTED = "SUBMITTED"
    POLLING = "POLLING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    TIMED_OUT = "TIMED_OUT"

    @property
    def is_terminal(self) -> bool:
        return self not in (PollState.SUBMITTED, PollState.POLLING)


@dataclass(frozen=True)
class PollPolicy:
    """How often and for how long to poll.

    Attributes:
        interval: Seconds to wait between checks.
        timeout: Wall-clock budget measured from the first check.
        max_attempts: Optional extra cap on the number of checks.
    """

    interval: float
    timeout: float
    max_attempts: int | None = None

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ValueError("interval must be positive")
        if self.timeout < 0:
            raise ValueError("timeout must be non-negative")


@dataclass
class PollOutcome:
    """Terminal result of a polling loop.

    Attributes:
        state: One of the terminal PollStates.
        payload: Whatever the last check returned alongside its state.
        attempts: Number of checks performed.
        elapsed: Seconds between the first check and the end of the loop.
    """

    state: PollState
    payload: Any = None
    attempts: int = 0
    elapsed: float = 0.0


CheckFn = Callable[[], Awaitable[tuple[PollState, Any]]]


async def poll_until(
    check: CheckFn,
    policy: PollPolicy,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> PollOutcome:
    """Call ``check`` until it reports a terminal state or time runs out.

    ``check`` returns ``(state, payload)``. A non-terminal state means keep
    polling. Elapsed time is read from ``clock`` before every sleep, so the
    loop gives up at most one interval (plus one check) past the timeout,
    however long each check takes.

    Args:
        check: Coroutine function performing one status check.
        policy: Interval, timeout and optional attempt cap.
        clock: Monotonic clock, injectable for tests.
        sleep: Sleep function, injectable for tests.

    Returns:
        The terminal outcome. Exceptions raised by ``check`` propagate.
    """
    started = clock()
    attempts = 0
    payload: Any = None

    while True:
        state, payload = await check()
        attempts += 1
        elapsed = clock() - started

        if state.is_terminal:
            return PollOutcome(state, payload, attempts, elapsed)

        if elapsed >= policy.timeout or (
            policy.max_attempts is not None and attempts >= policy.max_attempts
        ):
            logger.warning(
                "Polling gave up after %d attempts (%.1fs elapsed)", attempts, elapsed
            )
            return PollOutcome(PollState.TIMED_OUT, payload, attempts, elapsed)

        await sleep(policy.interval)
