"""FastAPI application factory"""

import asyncio
from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from savemate_engine.api.middleware import RequestIDMiddleware, MetricsMiddleware
from savemate_engine.api.v1 import notifications, savings, transactions
from savemate_engine.infrastructure.database.session import SessionLocal, init_db
from savemate_engine.infrastructure.observability.logging import setup_logging
from savemate_engine.services.reprocessor import run_periodic_sweep
from savemate_engine.config import settings

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema if asked to and run the background pending sweep"""
    if settings.create_schema:
        init_db()

    sweep_task = None
    if settings.pending_sweep_interval_seconds > 0:
        sweep_task = asyncio.create_task(
            run_periodic_sweep(SessionLocal, settings.pending_sweep_interval_seconds)
        )

    yield

    if sweep_task is not None:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="SaveMate Engine",
        description="Micro-saving engine: notification parsing, savings calculation and ledger",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(notifications.router, prefix="/v1", tags=["notifications"])
    app.include_router(savings.router, prefix="/v1", tags=["savings"])

    return app


app = create_app()
