"""TeamSpeak bridge HTTP application.

Creates the Starlette ASGI application. The lifespan maps the host
lifecycle onto the bridge: startup is the "ready" hook (connect),
shutdown is the "dispose" hook (teardown).

Routes:
- /health      - Liveness plus query session state
- /onebot      - OneBot v11 event webhook (commands, quick replies)
- /v1/presence - Presence report as JSON
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator

from starlette.applications import Starlette
from starlette.routing import Mount, Route

from .config import BridgeConfig, load_config
from .routes import health_routes, onebot_routes, presence_routes
from .runtime import BridgeRuntime


def create_app(
    config: BridgeConfig | None = None,
    runtime: BridgeRuntime | None = None,
) -> Starlette:
    """Create the bridge application.

    Args:
        config: Bridge configuration (loaded from file/environment when None)
        runtime: Pre-built runtime, mainly for tests

    Returns:
        Configured Starlette application
    """
    if runtime is None:
        runtime = BridgeRuntime(config or load_config())

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        await runtime.start()
        try:
            yield
        finally:
            await runtime.stop()

    routes: list[Route | Mount] = []
    routes.extend(health_routes)
    routes.extend(onebot_routes)
    routes.append(Mount("/v1", routes=presence_routes))

    app = Starlette(routes=routes, lifespan=lifespan, debug=runtime.config.debug)
    app.state.runtime = runtime
    return app
