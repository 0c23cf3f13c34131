"""Chat command surface.

A message is a command when its first word (an optional leading "/" is
allowed) equals one of the configured names, case-insensitively:

    ts
    /ts
    谁在ts
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .connection import ConnectionManager
from .executor import RetryExecutor
from .presence import presence_report

logger = logging.getLogger(__name__)

COMMAND_PREFIX = "/"
FAILURE_PREFIX = "TeamSpeak query failed"


@dataclass
class CommandResult:
    """Reply text for a handled command."""

    success: bool
    message: str


@dataclass
class ParsedCommand:
    name: str
    args: str
    raw: str


def parse_command(text: str) -> ParsedCommand | None:
    """Split a chat message into name and args; None for empty input."""
    raw = text.strip()
    if not raw:
        return None
    body = raw[len(COMMAND_PREFIX) :] if raw.startswith(COMMAND_PREFIX) else raw
    name, _, args = body.partition(" ")
    if not name:
        return None
    return ParsedCommand(name=name.lower(), args=args.strip(), raw=raw)


class PresenceCommand:
    """Answers "who is on TeamSpeak?" through the retry executor."""

    description = "Who is on TeamSpeak?"

    def __init__(self, manager: ConnectionManager, executor: RetryExecutor, names: Iterable[str]):
        self.manager = manager
        self.executor = executor
        self.names = {n.lower() for n in names}

    def matches(self, command: ParsedCommand) -> bool:
        return command.name in self.names

    async def execute(self) -> CommandResult:
        async def operation() -> str:
            return await presence_report(self.manager.require_session())

        outcome = await self.executor.run(operation)
        if outcome.success:
            return CommandResult(success=True, message=outcome.value or "")

        logger.warning(f"Presence query failed: {outcome.error}")
        return CommandResult(success=False, message=f"{FAILURE_PREFIX}: {outcome.error}")


class CommandRouter:
    """Routes chat messages to the command that claims them."""

    def __init__(self, commands: Iterable[PresenceCommand]):
        self.commands = list(commands)

    async def dispatch(self, text: str) -> CommandResult | None:
        """Run the matching command, or return None if nothing matches."""
        parsed = parse_command(text)
        if parsed is None:
            return None
        for command in self.commands:
            if command.matches(parsed):
                logger.info(f"Handling command {parsed.name!r}")
                return await command.execute()
        return None
