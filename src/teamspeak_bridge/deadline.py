"""Deadline race primitive.

Every suspending call in the bridge goes through here: connect attempts,
health probes, quit, and the operations run by the retry executor.

Usage:
    outcome = await race(session.whoami(), 5000)
    if outcome.timed_out:
        ...

    info = await with_deadline(session.whoami(), 5000, "whoami timed out")
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Generic, TypeVar

from .errors import DeadlineTimeout

T = TypeVar("T")


@dataclass(frozen=True)
class RaceOutcome(Generic[T]):
    """Tagged result of a deadline race: either a value or a timeout."""

    timed_out: bool
    value: T | None = None

    @classmethod
    def ok(cls, value: T) -> RaceOutcome[T]:
        return cls(timed_out=False, value=value)

    @classmethod
    def expired(cls) -> RaceOutcome[T]:
        return cls(timed_out=True)


async def race(operation: Awaitable[T], timeout_ms: int) -> RaceOutcome[T]:
    """Race an awaitable against a timer.

    The losing side is always released: when the operation wins the
    timer handle is cancelled, when the timer wins the operation is
    cancelled and whatever it would have produced is dropped. Errors
    raised by the operation itself propagate, including a TimeoutError
    that did not come from this deadline.

    Args:
        operation: Awaitable to run
        timeout_ms: Deadline in milliseconds

    Returns:
        RaceOutcome.ok(value) or RaceOutcome.expired()
    """
    deadline = asyncio.timeout(timeout_ms / 1000)
    try:
        async with deadline:
            value = await operation
    except TimeoutError:
        if deadline.expired():
            return RaceOutcome.expired()
        raise
    return RaceOutcome.ok(value)


async def with_deadline(operation: Awaitable[T], timeout_ms: int, message: str) -> T:
    """Like race(), but raise DeadlineTimeout(message) when the timer wins."""
    outcome = await race(operation, timeout_ms)
    if outcome.timed_out:
        raise DeadlineTimeout(message)
    return outcome.value  # type: ignore[return-value]
