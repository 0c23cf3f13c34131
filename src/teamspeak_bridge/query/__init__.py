"""TeamSpeak 3 ServerQuery collaborator.

- QuerySession: the shape the connection manager depends on
- QueryClient: raw text protocol implementation over asyncio streams
- codec: escaping and record parsing
"""

from .base import Connector, EventEmitter, QuerySession, SessionEvent
from .client import QueryClient, connect_query_client
from .models import ChannelEntry, ClientEntry, ClientType, ConnectParams, WhoAmI

__all__ = [
    "ChannelEntry",
    "ClientEntry",
    "ClientType",
    "ConnectParams",
    "Connector",
    "EventEmitter",
    "QueryClient",
    "QuerySession",
    "SessionEvent",
    "WhoAmI",
    "connect_query_client",
]
