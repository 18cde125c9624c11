"""
Scheduler primitives for the trade lifecycle.

Every phase suspends on the event loop through a Clock instead of calling
time.sleep, and expresses its timeouts as Deadline tokens. Production code
uses SystemClock; tests drive a virtual clock with identical semantics.
"""
import asyncio
import time
from abc import ABC, abstractmethod
from typing import Optional


class Clock(ABC):
    """Wall-clock source plus a cooperative sleep."""

    @abstractmethod
    def now(self) -> float:
        """Current unix time in seconds."""

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend the current task for `seconds`."""


class SystemClock(Clock):
    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


class Deadline:
    """A point in time after which a phase must stop."""

    def __init__(self, clock: Clock, at: float):
        self.clock = clock
        self.at = at

    @classmethod
    def after(cls, clock: Clock, seconds: float) -> "Deadline":
        return cls(clock, clock.now() + seconds)

    def remaining(self) -> float:
        return self.at - self.clock.now()

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def __repr__(self) -> str:
        return f"Deadline(at={self.at:.3f}, remaining={self.remaining():.3f})"


class Countdown:
    """
    A deadline that only starts when armed.

    The entry window uses one: its timeout begins the first time the
    monitor finds itself inside the window.
    """

    def __init__(self, clock: Clock, seconds: float):
        self.clock = clock
        self.seconds = seconds
        self._deadline: Optional[Deadline] = None

    def start(self) -> None:
        if self._deadline is None:
            self._deadline = Deadline.after(self.clock, self.seconds)

    @property
    def started(self) -> bool:
        return self._deadline is not None

    @property
    def expired(self) -> bool:
        return self._deadline is not None and self._deadline.expired
