"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest
from fakes import FakeConnector, FakeNotifier, FakeSession

from teamspeak_bridge.config import BridgeConfig
from teamspeak_bridge.query.models import ChannelEntry, ClientEntry, ClientType


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture
def config() -> BridgeConfig:
    return BridgeConfig(
        host="ts.example.org",
        user="serveradmin",
        password="secret",
        reconnect_attempts=3,
        reconnect_timeout_ms=200,
        query_timeout_ms=200,
        keepalive_interval_s=0,
        groups=["100", "200"],
    )


@pytest.fixture
def lobby_afk_session() -> FakeSession:
    """Alice and Bob in Lobby (order 0), Carol in AFK (order 1), plus a query client."""
    return FakeSession(
        clients=[
            ClientEntry(clid=1, cid=2, nickname="Carol"),
            ClientEntry(clid=2, cid=1, nickname="Alice"),
            ClientEntry(clid=3, cid=1, nickname="serveradmin", client_type=ClientType.SERVER_QUERY),
            ClientEntry(clid=4, cid=1, nickname="Bob"),
        ],
        channels=[
            ChannelEntry(cid=1, name="Lobby", order=0),
            ChannelEntry(cid=2, name="AFK", order=1),
        ],
    )


@pytest.fixture
def fake_connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def fake_notifier() -> FakeNotifier:
    return FakeNotifier()
