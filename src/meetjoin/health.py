"""Health check endpoints for the connection-details server.

Provides HTTP health check endpoints for load balancers and orchestration
tools (e.g., Docker healthcheck, Kubernetes liveness probe).
"""

import logging
import time

from aiohttp import web

from meetjoin.config import ResolverStrategy

logger = logging.getLogger(__name__)


class HealthCheckHandler:
    """Health check handler.

    ``/health`` reports whether a credential issuance strategy is
    configured; ``/liveness`` only reports that the process is up.
    """

    def __init__(self, strategy: ResolverStrategy) -> None:
        self.strategy = strategy
        self.start_time = time.time()

    async def health_check(self, request: web.Request) -> web.Response:
        """Health check endpoint.

        Returns:
            200 OK: An issuance strategy is configured
            503 Service Unavailable: No strategy configured

        Response format:
        {
            "status": "healthy" | "unhealthy",
            "uptime_seconds": float,
            "strategy": "remote" | "local" | "none"
        }
        """
        healthy = self.strategy is not ResolverStrategy.NONE
        response_data = {
            "status": "healthy" if healthy else "unhealthy",
            "uptime_seconds": time.time() - self.start_time,
            "strategy": self.strategy.value,
        }

        logger.debug("Health check performed", extra={"status": response_data["status"]})

        return web.json_response(response_data, status=200 if healthy else 503)

    async def liveness_check(self, request: web.Request) -> web.Response:
        """Liveness check endpoint.

        Returns:
            200 OK: Service is alive
        """
        return web.json_response(
            {
                "status": "alive",
                "uptime_seconds": time.time() - self.start_time,
            },
            status=200,
        )


def setup_health_routes(app: web.Application, strategy: ResolverStrategy) -> None:
    """Set up health check routes on application.

    Args:
        app: aiohttp Application instance
        strategy: Active credential issuance strategy
    """
    handler = HealthCheckHandler(strategy)

    app.router.add_get("/health", handler.health_check)
    app.router.add_get("/liveness", handler.liveness_check)

    logger.info("Health check endpoints configured: /health, /liveness")
