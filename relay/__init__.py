# Uvicorn application factory <https://www.uvicorn.org/#application-factories>
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from relay.logging import logger
from relay.managers.connection_registry import create_registries
from relay.middlewares.correlation_id import CorrelationIDMiddleware
from relay.routing import collect_subrouters, relay_endpoint_for
from relay.settings import app_settings

__version__ = "1.0.0"


async def startup(app: FastAPI) -> None:
    """
    Application startup handler.

    Publishes the app info metric and logs the effective relay setup.
    """
    from relay.utils.metrics import app_info

    app_info.labels(
        version=__version__,
        python_version=f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        environment=app_settings.ENVIRONMENT,
    ).set(1)

    logger.info(
        f"Relay started (default mode: {app_settings.RELAY_MODE}, "
        f"subprotocol: {app_settings.WS_SUBPROTOCOL or '-'}, "
        f"client ids: {app_settings.CLIENT_ID_STRATEGY})"
    )


async def shutdown(app: FastAPI) -> None:
    """
    Application shutdown handler.

    Closes every registered connection so that no peer outlives the
    listener; their read loops then unregister as no-ops.
    """
    logger.info("Application shutdown initiated")

    for registry in app.state.registries.values():
        await registry.close_all()

    logger.info("Application shutdown complete")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    await startup(app)
    yield
    await shutdown(app)


def application() -> FastAPI:
    """
    Initializes and configures the FastAPI application.

    - One connection registry per relay mode, stored on ``app.state``
    - HTTP routers (health, metrics) and WebSocket consumers (``/chat``,
      ``/echo``) collected from ``relay.routing.collect_subrouters()``
    - ``/`` served by the consumer of the configured ``RELAY_MODE``
    - ``CorrelationIDMiddleware`` for HTTP request correlation ids
    """
    app = FastAPI(
        title="WebSocket broadcast relay",
        description="Relays messages between connected WebSocket clients",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.registries = create_registries(app_settings)

    app.include_router(collect_subrouters())
    app.add_websocket_route(
        "/", relay_endpoint_for(app_settings.RELAY_MODE), name="relay"
    )

    app.add_middleware(CorrelationIDMiddleware)

    return app


app = application()  # Need for fastapi cli
