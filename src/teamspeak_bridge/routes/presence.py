"""Presence query over HTTP."""

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route


async def get_presence(request: Request) -> JSONResponse:
    """Run the presence command and return its report.

    Always 200: an outage is a normal answer ({"success": false, ...}).
    """
    runtime = request.app.state.runtime
    result = await runtime.who()
    if result.success:
        return JSONResponse({"success": True, "report": result.message})
    return JSONResponse({"success": False, "error": result.message})


presence_routes = [
    Route("/presence", get_presence, methods=["GET"]),
]
