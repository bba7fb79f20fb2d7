from __future__ import annotations

import asyncio
import logging

from ..config import Settings


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.dev_mode else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _run_async_server(settings: Settings) -> None:
    """Serve the auth API until interrupted."""
    from ..api.server import create_app, set_ready

    logger = logging.getLogger(__name__)

    app = create_app(settings)
    set_ready(app)

    import uvicorn

    if settings.dev_mode:
        logger.info(f"🔧 DEV MODE: Starting auth server on {settings.host}:{settings.port}")

    config = uvicorn.Config(app, host=settings.host, port=settings.port)
    server = uvicorn.Server(config)
    await server.serve()


def run() -> None:
    """Main entry point: read configuration from the environment and serve."""
    settings = Settings.from_env()
    _configure_logging(settings)
    asyncio.run(_run_async_server(settings))
