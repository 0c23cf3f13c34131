"""Tests for the ts-bridge CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner
from fakes import FakeConnector, FakeSession, no_sleep

from teamspeak_bridge.cli import main
from teamspeak_bridge.config import CONFIG_ENV_VAR
from teamspeak_bridge.runtime import BridgeRuntime


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.delenv("TS_BRIDGE_DEBUG", raising=False)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "bridge.yaml"
    path.write_text(
        "host: ts.example.org\n"
        "password: hunter2\n"
        "groups: ['100']\n"
        "onebot:\n"
        "  api_url: http://127.0.0.1:5700\n",
        encoding="utf-8",
    )
    return path


def _patch_runtime(monkeypatch: pytest.MonkeyPatch, connector: FakeConnector) -> None:
    class ScriptedRuntime(BridgeRuntime):
        def __init__(self, config, **kwargs):
            kwargs.update(connector=connector, sleep=no_sleep)
            super().__init__(config, **kwargs)

    monkeypatch.setattr("teamspeak_bridge.runtime.BridgeRuntime", ScriptedRuntime)


class TestConfigCommand:
    """Tests for `ts-bridge config`."""

    def test_json(self, config_file: Path) -> None:
        result = CliRunner().invoke(main, ["--config", str(config_file), "config", "-f", "json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["host"] == "ts.example.org"
        assert data["password"] == "********"
        assert data["groups"] == ["100"]

    def test_table(self, config_file: Path) -> None:
        result = CliRunner().invoke(main, ["--config", str(config_file), "config"])

        assert result.exit_code == 0, result.output
        assert "onebot.api_url" in result.output
        assert "http://127.0.0.1:5700" in result.output
        assert "hunter2" not in result.output

    def test_invalid_config(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("reconnect_attempts: 0\n", encoding="utf-8")

        result = CliRunner().invoke(main, ["--config", str(path), "config"])

        assert result.exit_code != 0
        assert "Invalid configuration" in result.output


class TestWhoCommand:
    """Tests for `ts-bridge who`."""

    def test_prints_report(
        self,
        config_file: Path,
        monkeypatch: pytest.MonkeyPatch,
        lobby_afk_session: FakeSession,
    ) -> None:
        _patch_runtime(monkeypatch, FakeConnector(session_factory=lambda: lobby_afk_session))

        result = CliRunner().invoke(main, ["--config", str(config_file), "who"])

        assert result.exit_code == 0, result.output
        assert "Lobby:\n    Alice, Bob\nAFK:\n    Carol" in result.output
        assert lobby_afk_session.quit_calls == 1

    def test_failure_exit_code(self, config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _patch_runtime(monkeypatch, FakeConnector(failures=1000))

        result = CliRunner().invoke(main, ["--config", str(config_file), "who"])

        assert result.exit_code == 1
        assert "TeamSpeak query failed: cannot connect" in result.output


class TestHealthCommand:
    def test_unreachable_bridge(self) -> None:
        result = CliRunner().invoke(main, ["health", "--url", "http://127.0.0.1:1"])

        assert result.exit_code == 1
        assert "Cannot connect to bridge" in result.output
