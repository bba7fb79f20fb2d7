from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..config import Settings
from ..errors import AuthFlowError
from ..service import AuthService
from .health import auth_health
from .routes_auth import ROUTES

logger = logging.getLogger(__name__)

API_PREFIX = "/api/auth"


async def _auth_error_handler(request: Request, exc: AuthFlowError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(f"{request.url.path}: {exc.message}")
    else:
        logger.info(f"{request.url.path}: {exc.http_status} {exc.message}")
    return JSONResponse(exc.to_dict(), status_code=exc.http_status)


def create_app(settings: Settings | None = None, service: AuthService | None = None) -> FastAPI:
    """Build the FastAPI application.

    Missing secrets do not stop the app from starting; the endpoints that need
    them answer 500 instead.
    """
    settings = settings or (service.settings if service else Settings.from_env())
    app = FastAPI(title="XRPL Wallet Auth", version="0.1.0")
    app.state.settings = settings
    app.state.auth_service = service or AuthService(settings)
    app.state.ready = False

    if not settings.session_secret:
        logger.warning("ENC_KEY is not set: session endpoints will answer 500")
    if not settings.xumm_api_key or not settings.xumm_api_secret:
        logger.warning("XUMM_KEY/XUMM_KEY_SECRET are not set: XUMM endpoints will answer 500")

    app.add_exception_handler(AuthFlowError, _auth_error_handler)
    app.add_api_route("/health", auth_health, methods=["GET"])
    for path, endpoint, methods in ROUTES:
        app.add_api_route(f"{API_PREFIX}{path}", endpoint, methods=methods)
    return app


def set_ready(app: FastAPI) -> None:
    app.state.ready = True
