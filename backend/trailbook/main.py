# backend/trailbook/main.py
"""
Trailbook API application.

Mounts the v1 routers under ``/api/v1``, the chat socket at
``/api/v1/chat/ws`` and Prometheus metrics at ``/metrics``.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .core.broadcast import connect_broadcast, disconnect_broadcast
from .core.config import is_running_tests, settings
from .core.request_context import attach_request_id_filter
from .errors import register_error_handlers
from .middleware.prometheus_middleware import METRICS_PATH, PrometheusMiddleware
from .middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import chat, connection_requests, messages, trail_connections
from .services.messaging import BroadcastRelay, get_chat_gateway

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s",
)
attach_request_id_filter()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"Trailbook API starting up (environment={settings.environment})")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")

    relay = None
    if settings.chat_broadcast_enabled:
        await connect_broadcast()
        relay = BroadcastRelay(get_chat_gateway())
        relay.start()
        logger.info("[BROADCAST] Chat relay started")

    yield

    logger.info("Trailbook API shutting down...")
    if relay is not None:
        await relay.stop()
        await disconnect_broadcast()


app = FastAPI(
    title="Trailbook API",
    description="Connections, trail connections and direct chat",
    version=__version__,
    lifespan=app_lifespan,
)
register_error_handlers(app)

app.add_middleware(PrometheusMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)

# V1 API router - all routes under /api/v1
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(connection_requests.router, prefix="/connection-requests")
api_v1.include_router(messages.router, prefix="/messages")
api_v1.include_router(trail_connections.router, prefix="/trail-connections")
api_v1.include_router(chat.router, prefix="/chat")
app.include_router(api_v1)


@app.get(METRICS_PATH, include_in_schema=False)
def metrics() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )


@app.get("/health", include_in_schema=False)
def health() -> dict[str, str]:
    return {"status": "ok", "version": __version__}
