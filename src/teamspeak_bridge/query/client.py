"""Raw ServerQuery client over asyncio streams.

Connection sequence:
1. TCP connect, read the "TS3" greeting and the welcome line
2. login, use port=<server_port>, clientupdate client_nickname=<nickname>
3. servernotifyregister event=server (enter-view notifications)
4. Start the reader task (and the keepalive task if enabled)

Replies arrive strictly in command order, so pending commands wait in a
FIFO. A caller that gives up (cancelled by a deadline) leaves its slot in
the queue; the reply is still consumed and dropped so the next caller
never receives a stale answer.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from typing import Any

from ..deadline import with_deadline
from ..errors import DeadlineTimeout, QueryError
from . import codec
from .base import EventEmitter, EventHandler, SessionEvent, Unsubscribe
from .models import ChannelEntry, ClientEntry, ClientType, ConnectParams, WhoAmI

logger = logging.getLogger(__name__)

GREETING = "TS3"
ERROR_EMPTY_RESULT = 1281
# A whole clientlist arrives as a single line
STREAM_LIMIT = 4 * 1024 * 1024

Reply = list[dict[str, str]]


class QueryClient:
    """One ServerQuery session.

    Use QueryClient.connect() to obtain a ready, logged-in session.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        debug: bool = False,
    ):
        self._reader = reader
        self._writer = writer
        self._debug = debug
        self._events = EventEmitter()
        self._pending: deque[tuple[str, asyncio.Future[Reply]]] = deque()
        self._buffer: Reply = []
        self._reader_task: asyncio.Task[None] | None = None
        self._keepalive_task: asyncio.Task[None] | None = None
        self._closed = False
        self._quitting = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @classmethod
    async def connect(cls, params: ConnectParams) -> QueryClient:
        """Open, authenticate and prepare a session.

        Raises:
            ConnectionError: Transport failure or unexpected greeting
            QueryError: The server rejected login/use/registration
        """
        reader, writer = await asyncio.open_connection(
            params.host, params.port, limit=STREAM_LIMIT
        )
        client = cls(reader, writer, debug=params.debug)
        try:
            await client._read_greeting()
            client.start()

            if params.username:
                await client.execute(
                    "login",
                    {
                        "client_login_name": params.username,
                        "client_login_password": params.password,
                    },
                )
            await client.execute("use", {"port": params.server_port})
            if params.nickname:
                await client.execute("clientupdate", {"client_nickname": params.nickname})
            await client.execute("servernotifyregister", {"event": "server"})

            if params.keepalive_interval_s > 0:
                client.start_keepalive(params.keepalive_interval_s, params.query_timeout_ms)
        except BaseException:
            # Includes cancellation by a connect deadline
            client.remove_all_listeners()
            await client.close()
            raise

        logger.info(f"Query session ready on {params.host}:{params.port}")
        return client

    async def _read_greeting(self) -> None:
        first = await self._readline()
        if first is None or first != GREETING:
            raise ConnectionError(f"Unexpected greeting from query server: {first!r}")
        # Welcome banner
        await self._readline()

    def start(self) -> None:
        """Start routing server lines."""
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(self._read_loop())

    def start_keepalive(self, interval_s: float, timeout_ms: int = 5000) -> None:
        if self._keepalive_task is None:
            self._keepalive_task = asyncio.create_task(
                self._keepalive_loop(interval_s, timeout_ms)
            )

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def quit(self) -> None:
        """Say goodbye and close. No-op if already closed."""
        if self._closed:
            return
        self._quitting = True
        try:
            await self.execute("quit")
        except (ConnectionError, QueryError) as e:
            logger.debug(f"quit failed: {e}")
        finally:
            await self.close()

    async def close(self) -> None:
        """Close the transport and fail anything still pending."""
        if self._closed:
            return
        self._closed = True

        current = asyncio.current_task()
        for task in (self._keepalive_task, self._reader_task):
            if task and task is not current and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        self._fail_pending(ConnectionError("Query connection closed"))
        self._writer.close()
        with contextlib.suppress(ConnectionError, OSError):
            await self._writer.wait_closed()

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def on(self, event: SessionEvent | str, handler: EventHandler) -> Unsubscribe:
        return self._events.on(event, handler)

    def remove_all_listeners(self) -> None:
        self._events.remove_all_listeners()

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def execute(
        self,
        name: str,
        params: dict[str, Any] | None = None,
        options: tuple[str, ...] = (),
    ) -> Reply:
        """Send one command and wait for its reply records.

        Raises:
            ConnectionError: The session is closed or closes while waiting
            QueryError: The server answered with a non-zero error id
        """
        if self._closed:
            raise ConnectionError("Query connection closed")

        line = codec.encode_command(name, params, options)
        future: asyncio.Future[Reply] = asyncio.get_running_loop().create_future()
        self._pending.append((name, future))

        if self._debug:
            logger.debug(f"query >> {_redact(name, line)}")
        try:
            self._writer.write(line.encode("utf-8") + b"\n")
            await self._writer.drain()
        except (ConnectionError, OSError) as e:
            if not future.done():
                future.set_exception(ConnectionError(f"Write failed: {e}"))

        return await future

    async def whoami(self) -> WhoAmI:
        records = await self.execute("whoami")
        return WhoAmI.model_validate(records[0] if records else {})

    async def version(self) -> dict[str, str]:
        records = await self.execute("version")
        return records[0] if records else {}

    async def client_list(self, client_type: ClientType | None = None) -> list[ClientEntry]:
        records = await self.execute("clientlist")
        clients = [ClientEntry.from_record(r) for r in records]
        if client_type is not None:
            clients = [c for c in clients if c.client_type == client_type]
        return clients

    async def get_channel_by_id(self, cid: int) -> ChannelEntry:
        records = await self.execute("channelinfo", {"cid": cid})
        if not records:
            raise QueryError(ERROR_EMPTY_RESULT, f"channel {cid} not found", "channelinfo")
        return ChannelEntry.model_validate({**records[0], "cid": cid})

    async def channel_list(self) -> list[ChannelEntry]:
        records = await self.execute("channellist")
        return [ChannelEntry.model_validate(r) for r in records]

    # -------------------------------------------------------------------------
    # Reader
    # -------------------------------------------------------------------------

    async def _readline(self) -> str | None:
        raw = await self._reader.readline()
        if not raw:
            return None
        # Server terminates lines with "\n\r"; the "\r" lands at the start
        # of the next read.
        return raw.decode("utf-8", errors="replace").strip("\r\n")

    async def _read_loop(self) -> None:
        error: Exception | None = None
        try:
            while True:
                line = await self._readline()
                if line is None:
                    break
                if line:
                    self._handle_line(line)
        except asyncio.CancelledError:
            return
        except Exception as e:
            error = e
            logger.error(f"Query reader failed: {e}")

        if self._closed or self._quitting:
            return

        await self.close()
        if error is not None:
            self._events.emit(SessionEvent.ERROR, error)
        self._events.emit(SessionEvent.CLOSE, error)

    def _handle_line(self, line: str) -> None:
        if self._debug:
            logger.debug(f"query << {line}")

        if codec.is_notification(line):
            self._handle_notification(line)
            return

        if not codec.is_error_line(line):
            self._buffer.extend(codec.parse_records(line))
            return

        error_id, message = codec.parse_error(line)
        records, self._buffer = self._buffer, []
        if not self._pending:
            logger.warning(f"Unsolicited reply from query server: {line}")
            return

        name, future = self._pending.popleft()
        if future.done():
            # Caller gave up; drop the reply
            return
        if error_id == 0:
            future.set_result(records)
        elif error_id == ERROR_EMPTY_RESULT:
            future.set_result([])
        else:
            future.set_exception(QueryError(error_id, message, name))

    def _handle_notification(self, line: str) -> None:
        name, record = codec.parse_notification(line)
        if name == "notifycliententerview":
            try:
                client = ClientEntry.from_record(record)
            except ValueError as e:
                logger.warning(f"Malformed enter-view notification: {e}")
                return
            self._events.emit(SessionEvent.CLIENT_CONNECT, client)
        else:
            logger.debug(f"Ignoring notification {name}")

    def _fail_pending(self, error: Exception) -> None:
        while self._pending:
            _, future = self._pending.popleft()
            if not future.done():
                future.set_exception(error)
        self._buffer = []

    async def _keepalive_loop(self, interval_s: float, timeout_ms: int) -> None:
        try:
            while not self._closed:
                await asyncio.sleep(interval_s)
                await with_deadline(
                    self.version(), timeout_ms, f"keepalive timed out after {timeout_ms}ms"
                )
        except asyncio.CancelledError:
            return
        except (ConnectionError, QueryError, DeadlineTimeout) as e:
            if not self._closed:
                logger.warning(f"Query keepalive failed: {e}")
                self._events.emit(SessionEvent.ERROR, e)


def _redact(name: str, line: str) -> str:
    if name == "login":
        return "login ********"
    return line


async def connect_query_client(params: ConnectParams) -> QueryClient:
    """Default connector used by the connection manager."""
    return await QueryClient.connect(params)
