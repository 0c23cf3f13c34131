"""Connection manager: the single owned query session.

Holds the session handle, the busy guard and the configuration, and runs
the bounded reconnection cycle. All state lives on the instance and is
mutated only here; the rest of the bridge reads it or asks for a
reconnect.

State machine:
    DISCONNECTED --reconnect()--> CONNECTING --success--> CONNECTED
                                   CONNECTING --exhausted--> DISCONNECTED
    CONNECTED --teardown()/reconnect()--> ...

Scheduling is cooperative on one event loop. The busy guard is checked
and set with no await in between, so two reconnection cycles can never
overlap.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum

from .config import BridgeConfig
from .deadline import race, with_deadline
from .errors import ConnectionUnavailable, ReconnectExhausted
from .query.base import Connector, EventHandler, QuerySession, SessionEvent, Unsubscribe
from .query.client import connect_query_client
from .query.models import ConnectParams
from .retry import ReconnectPolicy

logger = logging.getLogger(__name__)

SessionHooks = Mapping[SessionEvent, EventHandler]
Sleep = Callable[[float], Awaitable[None]]


class ConnectionState(str, Enum):
    """Externally visible connection state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionManager:
    """Owns exactly one query session at a time.

    Usage:
        manager = ConnectionManager(config)
        manager.set_hooks(bridge.hooks())
        if await manager.connect():
            session = manager.require_session()
        ...
        await manager.teardown()
    """

    def __init__(
        self,
        config: BridgeConfig,
        connector: Connector | None = None,
        policy: ReconnectPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        self.policy = policy or ReconnectPolicy(
            attempts=config.reconnect_attempts,
            delay_ms=config.reconnect_delay_ms,
            max_delay_ms=max(config.reconnect_delay_ms, 30_000),
        )
        self._connector: Connector = connector or connect_query_client
        self._sleep = sleep

        self._session: QuerySession | None = None
        self._busy = False
        self._hooks: dict[SessionEvent, EventHandler] = {}
        self._subscriptions: list[Unsubscribe] = []
        self._last_error: str | None = None
        self._connect_attempts = 0

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def session(self) -> QuerySession | None:
        return self._session

    @property
    def busy(self) -> bool:
        """True while a reconnection cycle is running."""
        return self._busy

    @property
    def state(self) -> ConnectionState:
        if self._busy:
            return ConnectionState.CONNECTING
        if self._session is not None:
            return ConnectionState.CONNECTED
        return ConnectionState.DISCONNECTED

    @property
    def last_error(self) -> str | None:
        """Reason of the most recent failed attempt or cycle."""
        return self._last_error

    @property
    def connect_attempts(self) -> int:
        """Total connect attempts issued over the manager's lifetime."""
        return self._connect_attempts

    def require_session(self) -> QuerySession:
        """Return the live session or raise ConnectionUnavailable."""
        if self._session is None:
            raise ConnectionUnavailable(self._last_error or "not connected")
        return self._session

    def connect_params(self) -> ConnectParams:
        config = self.config
        return ConnectParams(
            host=config.host,
            port=config.port,
            server_port=config.server_port,
            username=config.user,
            password=config.password,
            nickname=config.nickname,
            keepalive_interval_s=config.keepalive_interval_s,
            query_timeout_ms=config.query_timeout_ms,
            debug=config.debug,
        )

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def set_hooks(self, hooks: SessionHooks) -> None:
        """Register the named hooks bound after every successful connect.

        If a session is live, the new set replaces the bound one right away.
        """
        self._hooks = dict(hooks)
        if self._session is not None:
            self._bind_subscriptions(self._session)

    def _bind_subscriptions(self, session: QuerySession) -> None:
        self._unbind_subscriptions()
        for event, handler in self._hooks.items():
            self._subscriptions.append(session.on(event, handler))

    def _unbind_subscriptions(self) -> None:
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> bool:
        """Make sure a session exists.

        Returns True if already connected, False without side effects if a
        reconnection cycle is already running, otherwise the result of
        reconnect().
        """
        if self._session is not None and not self._busy:
            return True
        if self._busy:
            return False
        return await self.reconnect()

    async def health_check(self) -> bool:
        """Probe the session with whoami, bounded by query_timeout_ms.

        A pre-flight gate only: the session can still fail right after.
        """
        session = self._session
        if session is None:
            return False

        try:
            outcome = await race(session.whoami(), self.config.query_timeout_ms)
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            self._last_error = str(e) or type(e).__name__
            return False

        if outcome.timed_out:
            logger.warning(f"Health check timed out after {self.config.query_timeout_ms}ms")
            self._last_error = "health check timed out"
            return False
        return True

    async def teardown(self) -> None:
        """Unbind hooks, quit and drop the session. No-op without a session."""
        session = self._session
        if session is None:
            return

        self._unbind_subscriptions()
        session.remove_all_listeners()
        self._session = None

        try:
            outcome = await race(session.quit(), self.config.query_timeout_ms)
            if outcome.timed_out:
                logger.debug("quit timed out; session dropped")
        except Exception as e:
            logger.debug(f"quit failed; session dropped: {e}")

        logger.info("Query session closed")

    async def reconnect(self) -> bool:
        """Run one bounded reconnection cycle.

        Returns:
            True once a session is established, False if a cycle is
            already running or every attempt failed. Never raises for
            connect failures.
        """
        if self._busy:
            logger.debug("Reconnect requested while a cycle is running; skipped")
            return False
        self._busy = True

        try:
            await self.teardown()

            for attempt, delay in self.policy.schedule():
                self._connect_attempts += 1
                try:
                    session = await self._open_session()
                except Exception as e:
                    self._last_error = str(e) or type(e).__name__
                    logger.warning(
                        f"Connect attempt {attempt}/{self.policy.attempts} "
                        f"to {self.config.host}:{self.config.port} failed: {self._last_error}"
                    )
                    if delay is not None:
                        await self._sleep(delay)
                    continue

                self._session = session
                self._bind_subscriptions(session)
                logger.info(
                    f"Connected to {self.config.host}:{self.config.port} "
                    f"(attempt {attempt}/{self.policy.attempts})"
                )
                return True

            exhausted = ReconnectExhausted(self.policy.attempts, self._last_error)
            self._last_error = str(exhausted)
            logger.error(f"Reconnect to {self.config.host}:{self.config.port} {exhausted}")
            return False
        finally:
            self._busy = False

    async def _open_session(self) -> QuerySession:
        timeout_ms = self.config.reconnect_timeout_ms
        return await with_deadline(
            self._connector(self.connect_params()),
            timeout_ms,
            f"connect timed out after {timeout_ms}ms",
        )
