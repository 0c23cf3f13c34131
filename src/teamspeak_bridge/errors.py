"""Error types for the bridge.

The deadline race and the connection manager raise these upward.
RetryExecutor is the only place that turns them into a RetryOutcome,
so none of them reach command callers.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all bridge errors."""


class DeadlineTimeout(BridgeError, TimeoutError):
    """A deadline race elapsed before the operation finished."""


class ConnectionUnavailable(BridgeError):
    """No session exists and none could be established."""


class UnhealthySession(BridgeError):
    """The session did not answer its health probe."""


class ReconnectExhausted(BridgeError):
    """Every bounded reconnection attempt failed."""

    def __init__(self, attempts: int, last_error: str | None = None):
        self.attempts = attempts
        self.last_error = last_error
        message = f"gave up after {attempts} attempt(s)"
        if last_error:
            message = f"{message}: {last_error}"
        super().__init__(message)


class OperationFailure(BridgeError):
    """A remote operation failed after a healthy pre-flight check."""


class ConfigError(BridgeError):
    """Configuration could not be loaded or validated."""


class QueryError(BridgeError):
    """The query server answered a command with a non-zero error id."""

    def __init__(self, error_id: int, message: str, command: str | None = None):
        self.error_id = error_id
        self.message = message
        self.command = command
        prefix = f"{command}: " if command else ""
        super().__init__(f"{prefix}{message} (error id {error_id})")


class NotificationError(BridgeError):
    """The chat host refused or failed to deliver a message."""
