"""FastAPI application factory

Run with: uvicorn --factory moneylens_guard.api.main:create_app
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from moneylens_guard.api.middleware import MetricsMiddleware, RequestIDMiddleware
from moneylens_guard.api.v1 import assessment, caps, geofences, insights, preferences, transactions
from moneylens_guard.config import Settings, settings as default_settings
from moneylens_guard.context import GuardContext
from moneylens_guard.infrastructure.clients.notifications import NotificationWebhookClient
from moneylens_guard.infrastructure.database.session import create_session_factory
from moneylens_guard.infrastructure.observability.logging import setup_logging
from moneylens_guard.infrastructure.preferences import SqlKeyValueStore

logger = logging.getLogger(__name__)


async def deliver_notifications(context: GuardContext, client: NotificationWebhookClient, interval: float) -> None:
    """Flush the webhook outbox while the scans are scheduled, then once more on shutdown"""
    while context.scheduler.running:
        if client.pending:
            await client.flush()
        await asyncio.sleep(interval)
    if client.pending:
        await client.flush()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the insight scans and webhook delivery on the event loop for the lifetime of the server"""
    context: GuardContext = app.state.context
    context.start_analysis()
    runner = asyncio.create_task(context.scheduler.run_forever())
    delivery = asyncio.create_task(
        deliver_notifications(
            context,
            app.state.notification_client,
            context.config.notification_flush_interval_seconds,
        )
    )
    logger.info("Insight scans scheduled")
    try:
        yield
    finally:
        context.stop_analysis()
        context.stop_tracking()
        await runner
        await delivery


def create_app(context: GuardContext | None = None, config: Settings | None = None) -> FastAPI:
    """Create and configure FastAPI application"""
    config = config or default_settings
    setup_logging(config.log_level)

    if context is None:
        store = SqlKeyValueStore(create_session_factory(config.database_url))
        context = GuardContext(store, config)

    app = FastAPI(
        title="MoneyLens Spending Guard",
        description="Spending-risk scoring, geofencing and insights",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.context = context
    app.state.notification_client = NotificationWebhookClient(
        config.notification_webhook_url, queue_size=config.notification_queue_size
    )
    context.notifications.subscribe(app.state.notification_client)

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": config.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(assessment.router, prefix="/v1", tags=["assessment"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(preferences.router, prefix="/v1", tags=["preferences"])
    app.include_router(geofences.router, prefix="/v1", tags=["geofences"])
    app.include_router(insights.router, prefix="/v1", tags=["insights"])
    app.include_router(caps.router, prefix="/v1", tags=["caps"])

    return app
