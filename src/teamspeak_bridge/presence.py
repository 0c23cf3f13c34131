"""Presence listing: who is connected, grouped by channel."""

from __future__ import annotations

from dataclasses import dataclass, field

from .query.base import QuerySession
from .query.models import ChannelEntry, ClientType

NOBODY_HERE = "Nobody is here."
LINE_END = "\r\n"
INDENT = "    "


@dataclass
class ChannelPresence:
    """One channel and the nicknames of the regular clients in it."""

    channel: ChannelEntry
    nicknames: list[str] = field(default_factory=list)


async def collect_presence(session: QuerySession) -> list[ChannelPresence]:
    """List regular clients grouped by channel, ordered by channel order.

    Each channel is looked up once; clients keep their listing order
    inside a channel, and channels with equal order keep first-seen order.
    """
    clients = await session.client_list(client_type=ClientType.REGULAR)

    groups: dict[int, ChannelPresence] = {}
    for client in clients:
        # Some servers ignore the type filter
        if client.is_query:
            continue
        group = groups.get(client.cid)
        if group is None:
            channel = await session.get_channel_by_id(client.cid)
            group = groups[client.cid] = ChannelPresence(channel=channel)
        group.nicknames.append(client.nickname)

    return sorted(groups.values(), key=lambda g: g.channel.order)


def format_presence(groups: list[ChannelPresence]) -> str:
    """Render the plain-text report.

    Example:
        Lobby:\\r\\n
            Alice, Bob\\r\\n
        AFK:\\r\\n
            Carol\\r\\n
    """
    if not groups:
        return NOBODY_HERE

    lines: list[str] = []
    for group in groups:
        lines.append(f"{group.channel.name}:{LINE_END}")
        lines.append(f"{INDENT}{', '.join(group.nicknames)}{LINE_END}")
    return "".join(lines)


async def presence_report(session: QuerySession) -> str:
    """collect_presence() + format_presence()."""
    return format_presence(await collect_presence(session))
