"""Tests for the bridge runtime lifecycle."""

from __future__ import annotations

import asyncio

import pytest
from fakes import FakeConnector, FakeNotifier, FakeSession, no_sleep

from teamspeak_bridge.config import BridgeConfig
from teamspeak_bridge.notify import LogNotifier, OneBotNotifier, create_notifier
from teamspeak_bridge.query.base import SessionEvent
from teamspeak_bridge.query.models import ClientEntry
from teamspeak_bridge.runtime import BridgeRuntime


def _runtime(config: BridgeConfig, connector: FakeConnector, notifier: FakeNotifier) -> BridgeRuntime:
    return BridgeRuntime(config, connector=connector, notifier=notifier, sleep=no_sleep)


class TestBridgeRuntime:
    """Tests for BridgeRuntime."""

    @pytest.mark.asyncio
    async def test_start_and_stop(
        self, config: BridgeConfig, fake_connector: FakeConnector, fake_notifier: FakeNotifier
    ) -> None:
        runtime = _runtime(config, fake_connector, fake_notifier)

        assert await runtime.start() is True
        assert runtime.status()["connection"] == "connected"

        session = fake_connector.last_session
        await runtime.stop()

        assert session.quit_calls == 1
        assert fake_notifier.closed
        assert runtime.status()["connection"] == "disconnected"

    @pytest.mark.asyncio
    async def test_failed_start_is_not_fatal(
        self, config: BridgeConfig, fake_notifier: FakeNotifier
    ) -> None:
        runtime = _runtime(config, FakeConnector(failures=3), fake_notifier)

        assert await runtime.start() is False
        status = runtime.status()
        assert status["connection"] == "disconnected"
        assert status["host"] == "ts.example.org"
        assert status["last_error"].startswith("gave up after 3 attempt(s)")

        # Next command connects on demand
        result = await runtime.who()
        assert result.success
        await runtime.stop()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(
        self, config: BridgeConfig, fake_connector: FakeConnector, fake_notifier: FakeNotifier
    ) -> None:
        runtime = _runtime(config, fake_connector, fake_notifier)

        await runtime.stop()
        await runtime.stop()

        assert fake_connector.calls == 0

    @pytest.mark.asyncio
    async def test_join_notifications_end_to_end(
        self, config: BridgeConfig, fake_connector: FakeConnector, fake_notifier: FakeNotifier
    ) -> None:
        async with _runtime(config, fake_connector, fake_notifier) as runtime:
            fake_connector.last_session.emit(
                SessionEvent.CLIENT_CONNECT, ClientEntry(clid=3, cid=1, nickname="Dave")
            )
            await asyncio.sleep(0)

        assert fake_notifier.sent == [
            ("100", "Dave joined TeamSpeak."),
            ("200", "Dave joined TeamSpeak."),
        ]
        assert runtime.bridge.pending_tasks == 0

    @pytest.mark.asyncio
    async def test_handle_message(
        self, config: BridgeConfig, lobby_afk_session: FakeSession, fake_notifier: FakeNotifier
    ) -> None:
        connector = FakeConnector(session_factory=lambda: lobby_afk_session)
        async with _runtime(config, connector, fake_notifier) as runtime:
            result = await runtime.handle_message("/ts")
            ignored = await runtime.handle_message("good morning")

        assert result is not None
        assert result.message.startswith("Lobby:")
        assert ignored is None


class TestCreateNotifier:
    def test_log_notifier_without_api(self, config: BridgeConfig) -> None:
        assert isinstance(create_notifier(config), LogNotifier)

    @pytest.mark.asyncio
    async def test_onebot_notifier_with_api(self, config: BridgeConfig) -> None:
        config = config.model_copy(
            update={"onebot": config.onebot.model_copy(update={"api_url": "http://127.0.0.1:5700"})}
        )

        notifier = create_notifier(config)

        assert isinstance(notifier, OneBotNotifier)
        await notifier.aclose()
