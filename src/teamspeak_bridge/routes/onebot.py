"""OneBot v11 event webhook.

The chat host POSTs every event here. Message events whose text is a
bridge command get a quick-operation reply in the response body:

    {"reply": "Lobby:\\r\\n    Alice\\r\\n"}

Anything else is acknowledged with 204. When a secret is configured the
host signs the body: X-Signature: sha1=<hex hmac of raw body>.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Signature"


class OneBotEvent(BaseModel):
    """The subset of a OneBot event the bridge looks at."""

    model_config = ConfigDict(extra="ignore")

    post_type: str
    message_type: str | None = None
    raw_message: str | None = None
    message: Any = None
    group_id: int | None = None
    user_id: int | None = None

    @property
    def text(self) -> str:
        if self.raw_message is not None:
            return self.raw_message
        if isinstance(self.message, str):
            return self.message
        return ""


def verify_signature(secret: str, body: bytes, header: str | None) -> bool:
    """Check an X-Signature header against the raw body."""
    if not header or not header.startswith("sha1="):
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha1).hexdigest()
    return hmac.compare_digest(expected, header[len("sha1=") :])


async def onebot_webhook(request: Request) -> Response:
    runtime = request.app.state.runtime
    body = await request.body()

    secret = runtime.config.onebot.secret
    if secret and not verify_signature(secret, body, request.headers.get(SIGNATURE_HEADER)):
        logger.warning("Rejected webhook call with a bad signature")
        return JSONResponse({"error": "invalid signature"}, status_code=401)

    try:
        event = OneBotEvent.model_validate(json.loads(body or b"{}"))
    except (json.JSONDecodeError, ValidationError) as e:
        return JSONResponse({"error": f"invalid event: {e}"}, status_code=400)

    if event.post_type != "message":
        return Response(status_code=204)

    result = await runtime.handle_message(event.text)
    if result is None:
        return Response(status_code=204)
    return JSONResponse({"reply": result.message})


onebot_routes = [
    Route("/onebot", onebot_webhook, methods=["POST"]),
]
