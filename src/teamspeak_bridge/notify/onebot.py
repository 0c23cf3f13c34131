"""OneBot v11 HTTP API notifier.

Sends group messages through a OneBot-compatible chat host:

    POST {api_url}/send_group_msg
    Authorization: Bearer <access_token>
    {"group_id": 123456, "message": "Alice joined TeamSpeak."}

The host answers {"status": "ok" | "async" | "failed", "retcode": int, ...}.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..errors import NotificationError

logger = logging.getLogger(__name__)


class OneBotNotifier:
    """Delivers messages via the OneBot HTTP API."""

    def __init__(
        self,
        api_url: str,
        access_token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def send_message(self, target: str, text: str) -> None:
        """Send text to a group.

        Raises:
            NotificationError: Transport failure, HTTP error or a failed status
        """
        payload: dict[str, Any] = {"group_id": _group_id(target), "message": text}
        try:
            response = await self._client.post("/send_group_msg", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(f"send_group_msg to {target} failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if isinstance(data, dict) and data.get("status") == "failed":
            raise NotificationError(
                f"send_group_msg to {target} rejected (retcode {data.get('retcode')})"
            )
        logger.debug(f"Delivered message to group {target}")

    async def aclose(self) -> None:
        await self._client.aclose()


def _group_id(target: str) -> int | str:
    # OneBot expects numeric ids; keep anything else verbatim
    return int(target) if target.isdigit() else target
