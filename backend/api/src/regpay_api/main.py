"""FastAPI application for the registration payment gate.

This package provides REST endpoints for:
- Registration and profile unlock fee payment (Stripe Payment Intents)
- The Stripe webhook that marks users paid
- Route gate checks for the storefront
- Health checks
"""

from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from regpay import __version__
from regpay.config import get_settings, resolve_all_fees
from regpay.utils.logging import configure_logging, get_logger, mask_secret
from regpay_api.exceptions import register_exception_handlers
from regpay_api.middleware.correlation import CORRELATION_ID_HEADER, CorrelationIdMiddleware
from regpay_api.routes import (
    access_router,
    health_router,
    profile_unlock_router,
    registration_router,
)

logger = get_logger(__name__)


def create_app() -> FastAPI:
    """Build the application.

    Fees are resolved here so that a bad fee configuration stops the process
    at startup rather than failing individual payment requests.

    Raises:
        ConfigurationError: If settings or fee configuration are invalid.
    """
    settings = get_settings()
    configure_logging(settings)
    fees = resolve_all_fees(settings)

    app = FastAPI(
        title="Registration Payment Gate API",
        description="Collects marketplace fees through Stripe and gates paid pages",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[CORRELATION_ID_HEADER],
    )
    app.add_middleware(CorrelationIdMiddleware)

    register_exception_handlers(app)

    # Everything is served under /api behind API Gateway
    app.include_router(health_router, prefix="/api")
    app.include_router(registration_router, prefix="/api")
    app.include_router(profile_unlock_router, prefix="/api")
    app.include_router(access_router, prefix="/api")

    @app.get("/api/ping")
    async def ping() -> dict[str, Any]:
        """Liveness check."""
        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat(),
            "service": settings.app_name,
        }

    logger.info(
        "Payment gate configured for %s: %s, stripe key %s",
        settings.environment,
        ", ".join(f"{f.purpose}={f.amount} {f.currency}" for f in fees.values()),
        mask_secret(settings.stripe_secret_key.get_secret_value()),
    )
    return app


app = create_app()

# AWS Lambda entry point
handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int | None = None, reload: bool = True) -> None:
    """Run the FastAPI server.

    Args:
        host: Host to bind to (default: 0.0.0.0)
        port: Port to listen on (default: the PORT setting)
        reload: Enable hot reload for development (default: True)
    """
    import uvicorn

    port = port or get_settings().port
    if reload:
        # reload needs an import string, not the app object
        uvicorn.run(
            "regpay_api.main:app",
            host=host,
            port=port,
            reload=True,
            reload_dirs=["api/src", "shared/src"],
        )
    else:
        uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
