"""Poll-until primitive shared by the action and SSH readiness waits.

Each wait has its own wall-clock budget. A check is attempted, and another
attempt is scheduled only if it would start before the deadline.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any


class PollOutcome(Enum):
    """State reported by a check, and the final tag of a poll."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class PollStep:
    """What a single check observed."""

    outcome: PollOutcome
    value: Any = None
    error: str | None = None


@dataclass
class PollResult:
    """Result of a poll."""

    outcome: PollOutcome
    value: Any = None
    attempts: int = 0
    elapsed_seconds: float = 0.0
    error: str | None = None

    @property
    def completed(self) -> bool:
        return self.outcome is PollOutcome.COMPLETED

    @property
    def failed(self) -> bool:
        return self.outcome is PollOutcome.FAILED

    @property
    def timed_out(self) -> bool:
        return self.outcome is PollOutcome.TIMED_OUT


class Poller:
    """Repeat a check on a fixed interval until it settles or time runs out."""

    def __init__(
        self,
        interval_seconds: float,
        timeout_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize poller.

        Args:
            interval_seconds: Seconds between attempts.
            timeout_seconds: Overall budget for this poll.
            clock: Monotonic clock, injectable for tests.
            sleep: Async sleep, injectable for tests.
        """
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._sleep = sleep

    async def poll(
        self,
        check: Callable[[], Awaitable[PollStep]],
        on_attempt: Callable[[int, PollStep], None] | None = None,
    ) -> PollResult:
        """Run ``check`` until it completes, fails, or the budget is spent.

        Args:
            check: Async callable reporting the current state.
            on_attempt: Optional callback called with (attempt, step)
                        for progress reporting.

        Returns:
            PollResult tagged completed, failed or timed_out.
        """
        start = self._clock()
        deadline = start + self.timeout_seconds
        attempt = 0
        last_error: str | None = None

        while True:
            attempt += 1
            step = await check()
            if step.error:
                last_error = step.error

            if on_attempt:
                on_attempt(attempt, step)

            if step.outcome in (PollOutcome.COMPLETED, PollOutcome.FAILED):
                return PollResult(
                    outcome=step.outcome,
                    value=step.value,
                    attempts=attempt,
                    elapsed_seconds=self._clock() - start,
                    error=step.error,
                )

            if self._clock() + self.interval_seconds >= deadline:
                return PollResult(
                    outcome=PollOutcome.TIMED_OUT,
                    value=step.value,
                    attempts=attempt,
                    elapsed_seconds=self._clock() - start,
                    error=last_error,
                )

            await self._sleep(self.interval_seconds)
