"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from collection_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from collection_gateway.api.v1 import history, ledger, schedule, sheet
from collection_gateway.infrastructure.observability.logging import setup_logging
from collection_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Collection Gateway",
        description="Collection sheet and member ledger reconciliation service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(schedule.router, prefix="/v1", tags=["schedule"])
    app.include_router(sheet.router, prefix="/v1", tags=["collection-sheet"])
    app.include_router(ledger.router, prefix="/v1", tags=["ledger"])
    app.include_router(history.router, prefix="/v1", tags=["history"])

    return app


app = create_app()
