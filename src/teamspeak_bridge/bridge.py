"""Event bridge: session events -> chat notifications and reconnects.

Three named hooks are handed to the connection manager, which binds them
after every successful connect:

- clientconnect: regular clients only; one message per configured group
- error / close: schedule a reconnection cycle in the background

Hooks run synchronously inside the session's reader. Anything that
awaits is scheduled as a task and tracked so it can be cancelled on
shutdown.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Coroutine, Sequence
from typing import Any

from .connection import ConnectionManager
from .notify.base import Notifier
from .query.base import EventHandler, SessionEvent
from .query.models import ClientEntry

logger = logging.getLogger(__name__)


def join_message(nickname: str) -> str:
    return f"{nickname} joined TeamSpeak."


class EventBridge:
    """Forwards session events to the notification channel."""

    def __init__(
        self,
        manager: ConnectionManager,
        notifier: Notifier,
        targets: Sequence[str] = (),
    ):
        self.manager = manager
        self.notifier = notifier
        self.targets = list(targets)
        self._tasks: set[asyncio.Task[Any]] = set()

    def hooks(self) -> dict[SessionEvent, EventHandler]:
        """The subscription set bound on every (re)connect."""
        return {
            SessionEvent.CLIENT_CONNECT: self.on_client_connect,
            SessionEvent.ERROR: self.on_error,
            SessionEvent.CLOSE: self.on_close,
        }

    def attach(self) -> None:
        """Register this bridge's hooks with the connection manager."""
        self.manager.set_hooks(self.hooks())

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def on_client_connect(self, client: ClientEntry) -> None:
        if client.is_query:
            return
        text = join_message(client.nickname)
        logger.info(f"Client joined: {client.nickname}")
        for target in self.targets:
            self._spawn(self._deliver(target, text), f"notify-{target}")

    def on_error(self, error: BaseException | None = None) -> None:
        logger.warning(f"Query session error: {error}; reconnecting")
        self._spawn(self._reconnect("error"), "reconnect-error")

    def on_close(self, error: BaseException | None = None) -> None:
        logger.info("Query session closed by server; reconnecting")
        self._spawn(self._reconnect("close"), "reconnect-close")

    # -------------------------------------------------------------------------
    # Background work
    # -------------------------------------------------------------------------

    async def _deliver(self, target: str, text: str) -> None:
        try:
            await self.notifier.send_message(target, text)
        except Exception as e:
            logger.warning(f"Failed to notify {target}: {e}")

    async def _reconnect(self, reason: str) -> None:
        if await self.manager.reconnect():
            logger.info(f"Reconnected after {reason}")
        elif self.manager.busy:
            logger.debug(f"Reconnect after {reason} skipped; cycle already running")
        else:
            logger.error(f"Reconnect after {reason} failed: {self.manager.last_error}")

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def aclose(self) -> None:
        """Cancel and await outstanding deliveries and reconnects."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()
