"""Reconnection policy.

The policy only answers "how many attempts" and "how long to wait after
attempt N". The loop that applies it lives in ConnectionManager.reconnect,
so swapping the policy never touches call sites.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

DEFAULT_DELAY_MS = 2_000


@dataclass(frozen=True)
class ReconnectPolicy:
    """Bounded attempts with a fixed (or optionally growing) delay.

    Attributes:
        attempts: Maximum connect attempts per reconnection cycle
        delay_ms: Wait after the first failed attempt
        backoff: Multiplier applied per further attempt; 1.0 keeps the delay fixed
        max_delay_ms: Upper bound for the computed delay
    """

    attempts: int
    delay_ms: int = DEFAULT_DELAY_MS
    backoff: float = 1.0
    max_delay_ms: int = 30_000

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")
        if self.delay_ms < 0:
            raise ValueError("delay_ms cannot be negative")
        if self.backoff < 1.0:
            raise ValueError("backoff must be >= 1.0")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given 1-based failed attempt."""
        delay = self.delay_ms * (self.backoff ** (attempt - 1))
        return min(delay, self.max_delay_ms) / 1000

    def schedule(self) -> Iterator[tuple[int, float | None]]:
        """Yield (attempt, delay_after_failure) pairs.

        The delay is None for the last attempt, which has nothing to wait for.
        """
        for attempt in range(1, self.attempts + 1):
            if attempt < self.attempts:
                yield attempt, self.delay_for(attempt)
            else:
                yield attempt, None
