from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


async def auth_health(request: Request) -> JSONResponse:
    ready = getattr(request.app.state, "ready", False)
    return JSONResponse({"status": "ready" if ready else "starting"})
