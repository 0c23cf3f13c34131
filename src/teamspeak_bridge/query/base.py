"""Session collaborator interface.

The connection manager only depends on the QuerySession shape below,
never on protocol bytes. QueryClient is the real implementation; tests
plug in in-memory fakes.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from .models import ChannelEntry, ClientEntry, ClientType, ConnectParams, WhoAmI

logger = logging.getLogger(__name__)


class SessionEvent(str, Enum):
    """Events a session can emit."""

    CLIENT_CONNECT = "clientconnect"
    ERROR = "error"
    CLOSE = "close"


EventHandler = Callable[..., None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class QuerySession(Protocol):
    """One authenticated query connection."""

    async def whoami(self) -> WhoAmI: ...

    async def client_list(self, client_type: ClientType | None = None) -> list[ClientEntry]: ...

    async def get_channel_by_id(self, cid: int) -> ChannelEntry: ...

    async def channel_list(self) -> list[ChannelEntry]: ...

    def on(self, event: SessionEvent | str, handler: EventHandler) -> Unsubscribe: ...

    def remove_all_listeners(self) -> None: ...

    async def quit(self) -> None: ...


Connector = Callable[[ConnectParams], Awaitable[QuerySession]]


class EventEmitter:
    """Synchronous listener registry.

    Handlers run inline during emit(); anything slow must be scheduled by
    the handler itself. A failing handler is logged and does not stop the
    others.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[EventHandler]] = {}

    def on(self, event: SessionEvent | str, handler: EventHandler) -> Unsubscribe:
        key = event.value if isinstance(event, SessionEvent) else event
        self._listeners.setdefault(key, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._listeners.get(key)
            if handlers and handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def emit(self, event: SessionEvent | str, *args: Any) -> None:
        key = event.value if isinstance(event, SessionEvent) else event
        for handler in list(self._listeners.get(key, [])):
            try:
                handler(*args)
            except Exception:
                logger.exception(f"Error in listener for {key}")

    def listener_count(self, event: SessionEvent | str | None = None) -> int:
        if event is None:
            return sum(len(h) for h in self._listeners.values())
        key = event.value if isinstance(event, SessionEvent) else event
        return len(self._listeners.get(key, []))

    def remove_all_listeners(self) -> None:
        self._listeners.clear()
