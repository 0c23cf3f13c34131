"""Notifier that only writes to the log.

Used when no chat host API is configured, e.g. for the one-shot CLI.
"""

from __future__ import annotations

import logging
from collections import deque

logger = logging.getLogger(__name__)

RECENT_MESSAGES = 50


class LogNotifier:
    """Logs every message instead of delivering it.

    The last RECENT_MESSAGES messages stay available in ``sent``.
    """

    def __init__(self, keep: int = RECENT_MESSAGES) -> None:
        self.sent: deque[tuple[str, str]] = deque(maxlen=keep)

    async def send_message(self, target: str, text: str) -> None:
        self.sent.append((target, text))
        logger.info(f"[{target}] {text}")

    async def aclose(self) -> None:
        pass
