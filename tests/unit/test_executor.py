"""Tests for the retry executor."""

from __future__ import annotations

import asyncio

import pytest
from fakes import FakeConnector, no_sleep

from teamspeak_bridge.config import BridgeConfig
from teamspeak_bridge.connection import ConnectionManager
from teamspeak_bridge.executor import RetryExecutor, RetryOutcome


def _executor(config: BridgeConfig, connector: FakeConnector) -> RetryExecutor:
    return RetryExecutor(ConnectionManager(config, connector=connector, sleep=no_sleep))


class CountingOperation:
    """Zero-argument operation that fails a number of times first."""

    def __init__(self, failures: int = 0, value: str = "report"):
        self.failures = failures
        self.value = value
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(f"failure {self.calls}")
        return self.value


class TestRetryOutcome:
    def test_constructors(self) -> None:
        assert RetryOutcome.ok(1) == RetryOutcome(success=True, value=1)
        assert RetryOutcome.failed("nope") == RetryOutcome(success=False, error="nope")


class TestRetryExecutor:
    """Tests for RetryExecutor.run()."""

    @pytest.mark.asyncio
    async def test_connects_on_demand(self, config: BridgeConfig) -> None:
        """Without a session the executor connects first, then skips the probe."""
        connector = FakeConnector()
        executor = _executor(config, connector)

        outcome = await executor.run(CountingOperation())

        assert outcome == RetryOutcome.ok("report")
        assert connector.calls == 1
        assert connector.last_session.whoami_calls == 0

    @pytest.mark.asyncio
    async def test_probes_existing_session(self, config: BridgeConfig) -> None:
        connector = FakeConnector()
        executor = _executor(config, connector)
        await executor.manager.connect()

        outcome = await executor.run(CountingOperation())

        assert outcome.success
        assert connector.last_session.whoami_calls == 1
        assert connector.calls == 1

    @pytest.mark.asyncio
    async def test_unhealthy_session_is_replaced(self, config: BridgeConfig) -> None:
        connector = FakeConnector()
        executor = _executor(config, connector)
        await executor.manager.connect()
        stale = connector.last_session
        stale.healthy = False

        outcome = await executor.run(CountingOperation())

        assert outcome.success
        assert connector.calls == 2
        assert stale.quit_calls == 1
        assert executor.manager.session is connector.last_session

    @pytest.mark.asyncio
    async def test_retries_failed_operation_after_reconnect(self, config: BridgeConfig) -> None:
        connector = FakeConnector()
        executor = _executor(config, connector)
        operation = CountingOperation(failures=1)

        outcome = await executor.run(operation)

        assert outcome == RetryOutcome.ok("report")
        assert operation.calls == 2
        # initial connect + one reconnect after the failure
        assert connector.calls == 2
        # The reopened session is probed before the retry
        assert connector.last_session.whoami_calls == 1

    @pytest.mark.asyncio
    async def test_operation_attempts_are_bounded(self, config: BridgeConfig) -> None:
        connector = FakeConnector()
        executor = _executor(config, connector)
        operation = CountingOperation(failures=100)

        outcome = await executor.run(operation, max_retries=2)

        assert not outcome.success
        assert outcome.error == "failure 3"
        assert operation.calls == 3

    @pytest.mark.asyncio
    async def test_no_retries(self, config: BridgeConfig) -> None:
        connector = FakeConnector()
        executor = _executor(config, connector)
        await executor.manager.connect()
        operation = CountingOperation(failures=100)

        outcome = await executor.run(operation, max_retries=0)

        assert outcome.error == "failure 1"
        assert operation.calls == 1
        assert connector.calls == 1

    @pytest.mark.asyncio
    async def test_reconnect_triggers_are_bounded(self, config: BridgeConfig) -> None:
        """Server down: one reconnection cycle per attempt, operation never runs."""
        connector = FakeConnector(failures=100)
        executor = _executor(config.model_copy(update={"reconnect_attempts": 1}), connector)
        operation = CountingOperation()

        outcome = await executor.run(operation, max_retries=2)

        assert not outcome.success
        assert operation.calls == 0
        assert connector.calls == 3

    @pytest.mark.asyncio
    async def test_cannot_connect_reason(self, config: BridgeConfig) -> None:
        """Three connect attempts per cycle, all refused."""
        connector = FakeConnector(failures=100)
        executor = _executor(config, connector)

        outcome = await executor.run(CountingOperation())

        assert outcome.error == "cannot connect: gave up after 3 attempt(s): connection refused"
        assert connector.calls == 9

    @pytest.mark.asyncio
    async def test_operation_deadline(self, config: BridgeConfig) -> None:
        connector = FakeConnector()
        executor = _executor(config, connector)

        async def never() -> str:
            await asyncio.Event().wait()
            return "unreachable"

        outcome = await executor.run(never, max_retries=0)

        assert outcome.error == "operation timed out after 200ms"

    @pytest.mark.asyncio
    async def test_rejects_negative_retries(self, config: BridgeConfig) -> None:
        executor = _executor(config, FakeConnector())

        with pytest.raises(ValueError):
            await executor.run(CountingOperation(), max_retries=-1)
