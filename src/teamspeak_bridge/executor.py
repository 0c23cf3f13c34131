"""Retry executor for remote operations.

Wraps any zero-argument async operation with:
- a pre-flight check (session present and healthy, else reconnect)
- a deadline of query_timeout_ms
- bounded retry with a reconnect between attempts

Every typed error stops here; callers only ever see a RetryOutcome.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from .connection import ConnectionManager
from .deadline import with_deadline
from .errors import ConnectionUnavailable, OperationFailure, UnhealthySession

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 2

Operation = Callable[[], Awaitable[T]]


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    """Uniform result: success with a value, or failure with a reason."""

    success: bool
    value: T | None = None
    error: str | None = None

    @classmethod
    def ok(cls, value: T) -> RetryOutcome[T]:
        return cls(success=True, value=value)

    @classmethod
    def failed(cls, reason: str) -> RetryOutcome[T]:
        return cls(success=False, error=reason)


class RetryExecutor:
    """Runs operations against the managed session with retry semantics."""

    def __init__(self, manager: ConnectionManager, default_retries: int = DEFAULT_MAX_RETRIES):
        self.manager = manager
        self.default_retries = default_retries

    async def run(self, operation: Operation[T], max_retries: int | None = None) -> RetryOutcome[T]:
        """Execute operation with up to max_retries retries.

        Both the number of operation attempts and the number of
        reconnection triggers are capped at max_retries + 1.

        Args:
            operation: Zero-argument callable returning an awaitable
            max_retries: Retries after the first attempt (default 2)

        Returns:
            RetryOutcome with the value, or the last error's message
        """
        retries = self.default_retries if max_retries is None else max_retries
        if retries < 0:
            raise ValueError("max_retries cannot be negative")

        total = retries + 1
        reconnects_left = total
        timeout_ms = self.manager.config.query_timeout_ms

        async def recover() -> bool:
            nonlocal reconnects_left
            if reconnects_left <= 0:
                return False
            reconnects_left -= 1
            return await self.manager.reconnect()

        for attempt in range(1, total + 1):
            has_retry = attempt < total

            # Pre-flight: connect if needed, otherwise the existing session must answer a probe
            if self.manager.session is None:
                if not await recover():
                    error = ConnectionUnavailable(self.manager.last_error or "not connected")
                    if has_retry:
                        continue
                    return RetryOutcome.failed(f"cannot connect: {error}")
            elif not await self.manager.health_check():
                logger.info("Session unhealthy; reconnecting before running operation")
                if not await recover():
                    error = UnhealthySession(self.manager.last_error or "health check failed")
                    if has_retry:
                        continue
                    return RetryOutcome.failed(f"cannot connect: {error}")

            try:
                value = await with_deadline(
                    operation(), timeout_ms, f"operation timed out after {timeout_ms}ms"
                )
            except Exception as e:
                failure = OperationFailure(str(e) or type(e).__name__)
                logger.warning(f"Operation attempt {attempt}/{total} failed: {failure}")
                if not has_retry:
                    return RetryOutcome.failed(str(failure))
                await recover()
                continue

            return RetryOutcome.ok(value)

        # Loop always returns on the final attempt
        return RetryOutcome.failed("cannot connect")
