"""Notification channels."""

from __future__ import annotations

from ..config import BridgeConfig
from .base import Notifier
from .log import LogNotifier
from .onebot import OneBotNotifier


def create_notifier(config: BridgeConfig) -> Notifier:
    """Pick the notifier for the configured chat host."""
    if config.onebot.api_url:
        return OneBotNotifier(
            config.onebot.api_url,
            access_token=config.onebot.access_token,
            timeout=config.onebot.timeout,
        )
    return LogNotifier()


__all__ = [
    "LogNotifier",
    "Notifier",
    "OneBotNotifier",
    "create_notifier",
]
