"""Connection-details HTTP server.

Exposes ``GET /connection-details`` for browser and CLI clients. Each
request is resolved through the configured credential strategy and the
error taxonomy is mapped onto HTTP statuses:

- 400: room name without the ``event-`` prefix, or missing participant name
- 500: no issuance strategy configured, or local signing incomplete
- 502: malformed issuance service response
- any other upstream status: status, body bytes and content type passed
  through verbatim
"""

import argparse
import asyncio
import logging
from collections.abc import AsyncIterator
from pathlib import Path

import aiohttp
from aiohttp import hdrs, web

from meetjoin.config import AppConfig
from meetjoin.credentials import CredentialResolver
from meetjoin.errors import CredentialError, UpstreamIssuanceError
from meetjoin.health import setup_health_routes
from meetjoin.types import RequestContext

logger = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey("config", AppConfig)
RESOLVER_KEY = web.AppKey("resolver", CredentialResolver)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "configs" / "meetjoin.yaml"


async def connection_details(request: web.Request) -> web.Response:
    """Resolve connection details for a room and participant.

    Query parameters:
    - roomName: room identifier, must start with ``event-``
    - participantName: participant display name

    Response format (200):
    {
        "serverUrl": str,
        "roomName": str,
        "participantName": str,
        "participantToken": str
    }
    """
    room_name = request.query.get("roomName", "")
    participant_name = request.query.get("participantName", "")
    resolver = request.app[RESOLVER_KEY]

    try:
        credential = await resolver.resolve(
            room_name,
            participant_name,
            RequestContext.from_headers(request.headers),
        )
    except UpstreamIssuanceError as e:
        logger.info(
            "Issuance service error passed through",
            extra={"room": room_name, "status": e.status},
        )
        return web.Response(
            body=e.body,
            status=e.status,
            headers={hdrs.CONTENT_TYPE: e.content_type},
        )
    except CredentialError as e:
        logger.info(
            "Connection details request rejected",
            extra={"room": room_name, "status": e.http_status, "error": str(e)},
        )
        return web.Response(text=str(e), status=e.http_status)

    logger.info(
        "Connection details issued",
        extra={"room": room_name, "strategy": resolver.strategy.value},
    )
    return web.json_response(credential.to_dict())


def create_app(config: AppConfig, http_session: aiohttp.ClientSession | None = None) -> web.Application:
    """Build the aiohttp application.

    Args:
        config: Loaded configuration
        http_session: Optional session for issuance requests. When omitted,
            one is opened on startup and closed on cleanup.
    """
    app = web.Application()
    app[CONFIG_KEY] = config

    async def issuance_session(app: web.Application) -> AsyncIterator[None]:
        if http_session is not None:
            app[RESOLVER_KEY] = CredentialResolver(config.issuance, http_session)
            yield
            return
        async with aiohttp.ClientSession() as session:
            app[RESOLVER_KEY] = CredentialResolver(config.issuance, session)
            yield

    app.cleanup_ctx.append(issuance_session)
    app.router.add_get("/connection-details", connection_details)
    setup_health_routes(app, config.issuance.strategy)
    return app


async def start_server(config: AppConfig) -> None:
    """Run the connection-details server until cancelled.

    Args:
        config: Loaded configuration
    """
    app = create_app(config)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.server.host, config.server.port)
    await site.start()

    logger.info(
        "Connection-details server started",
        extra={
            "host": config.server.host,
            "port": config.server.port,
            "strategy": config.issuance.strategy.value,
            "show_settings_menu": config.ui.show_settings_menu,
        },
    )

    try:
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        logger.info("Server loop cancelled")
    finally:
        await runner.cleanup()
        logger.info("Connection-details server stopped")


def main() -> None:
    """Entry point for the connection-details server."""
    parser = argparse.ArgumentParser(description="Connection-details server")
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path to meetjoin config YAML file",
    )
    args = parser.parse_args()

    config = AppConfig.from_yaml_with_defaults(args.config)
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info("Loaded configuration", extra={"config_path": str(args.config)})

    try:
        asyncio.run(start_server(config))
    except KeyboardInterrupt:
        logger.info("Connection-details server interrupted")


if __name__ == "__main__":
    main()
