"""Notification channel interface."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Notifier(Protocol):
    """Delivers text messages to chat targets (group ids).

    The bridge treats delivery as fire-and-forget: errors raised here are
    logged by the caller and never retried.
    """

    async def send_message(self, target: str, text: str) -> None: ...

    async def aclose(self) -> None: ...
