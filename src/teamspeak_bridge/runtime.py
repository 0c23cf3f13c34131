"""Bridge runtime: wires configuration, session, bridge and commands.

The host drives two lifecycle hooks:
- ready   -> start(): connect (failure is logged, not fatal)
- dispose -> stop():  cancel bridge tasks, tear the session down
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .bridge import EventBridge
from .commands import CommandResult, CommandRouter, PresenceCommand
from .config import BridgeConfig
from .connection import ConnectionManager, Sleep
from .executor import RetryExecutor
from .notify import Notifier, create_notifier
from .query.base import Connector

logger = logging.getLogger(__name__)


class BridgeRuntime:
    """One bridge instance with an explicit create/start/stop lifecycle."""

    def __init__(
        self,
        config: BridgeConfig,
        *,
        connector: Connector | None = None,
        notifier: Notifier | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        self.manager = ConnectionManager(config, connector=connector, sleep=sleep)
        self.executor = RetryExecutor(self.manager)
        self.notifier = notifier or create_notifier(config)
        self.bridge = EventBridge(self.manager, self.notifier, config.groups)
        self.presence = PresenceCommand(self.manager, self.executor, config.command_names)
        self.router = CommandRouter([self.presence])
        self.bridge.attach()

    async def start(self) -> bool:
        """Ready hook. Returns whether the initial connect succeeded."""
        connected = await self.manager.connect()
        if connected:
            logger.info("Bridge ready")
        else:
            logger.error(
                f"Initial connect failed ({self.manager.last_error}); "
                "will retry on the next command or event"
            )
        return connected

    async def stop(self) -> None:
        """Dispose hook. Safe to call more than once."""
        await self.bridge.aclose()
        await self.manager.teardown()
        await self.notifier.aclose()
        logger.info("Bridge stopped")

    async def who(self) -> CommandResult:
        """Run the presence command directly."""
        return await self.presence.execute()

    async def handle_message(self, text: str) -> CommandResult | None:
        return await self.router.dispatch(text)

    def status(self) -> dict[str, Any]:
        return {
            "connection": self.manager.state.value,
            "host": self.config.host,
            "port": self.config.port,
            "last_error": self.manager.last_error,
        }

    async def __aenter__(self) -> BridgeRuntime:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()
