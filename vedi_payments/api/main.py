"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from vedi_payments.api.middleware import RequestIDMiddleware, MetricsMiddleware
from vedi_payments.api.v1 import analytics, charges, fees, payments, settlements
from vedi_payments.infrastructure.observability.logging import setup_logging
from vedi_payments.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Vedi Payments",
        description="Payment splitting and settlement service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
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
    app.include_router(charges.router, prefix="/v1", tags=["charges"])
    app.include_router(settlements.router, prefix="/v1", tags=["settlements"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(analytics.router, prefix="/v1", tags=["analytics"])
    app.include_router(fees.router, prefix="/v1", tags=["fees"])

    return app


app = create_app()
