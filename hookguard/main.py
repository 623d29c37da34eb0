"""
HookGuard - webhook intake service.

Features:
- HMAC-SHA256 signature verification of inbound webhooks
- Per-client fixed window rate limiting
- Bounded in-memory history with filtered, paginated queries
- Structured logging with correlation IDs
- Prometheus metrics
- Health checks (liveness and readiness)
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from .config import Settings, get_settings
from .logging import setup_logging, get_logger, SERVICE_NAME
from .api.router import router
from .middleware import (
    CorrelationMiddleware,
    MetricsMiddleware,
    SecurityHeadersMiddleware,
    ValidationMiddleware,
    register_exception_handlers,
)
from .metrics import Metrics
from .health import HealthChecker
from .security.signature import SIGNATURE_HEADER
from .services.intake import build_intake_guard

VERSION = "0.1.0"

logger = get_logger()


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build a fully wired application.

    Args:
        settings: Configuration to use (defaults to environment settings)

    Returns:
        FastAPI app with its own intake guard, metrics registry and health checker
    """
    settings = settings or get_settings()
    setup_logging(json_output=settings.LOG_JSON, level=settings.LOG_LEVEL)

    metrics = Metrics(service_name=SERVICE_NAME, version=VERSION)
    intake = build_intake_guard(settings, metrics=metrics)
    health_checker = HealthChecker(intake.store, service_name=SERVICE_NAME, version=VERSION)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "service_starting",
            version=VERSION,
            env=settings.ENV,
            port=settings.SERVICE_PORT,
        )
        yield
        logger.info("service_stopping")
        metrics.app_up.labels(service=SERVICE_NAME, version=VERSION).set(0)

    app = FastAPI(
        title="HookGuard",
        version=VERSION,
        description="Webhook intake with signature verification, rate limiting and bounded history",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.intake = intake
    app.state.metrics = metrics

    register_exception_handlers(app)

    # Added innermost first: CORS -> security headers -> correlation ID -> metrics/logging -> validation
    app.add_middleware(ValidationMiddleware, max_size=settings.MAX_EVENT_SIZE)
    app.add_middleware(MetricsMiddleware, metrics=metrics)
    app.add_middleware(CorrelationMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.CORS_ORIGIN],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type", SIGNATURE_HEADER],
    )

    app.include_router(router)

    # Mount Prometheus metrics endpoint
    app.mount("/metrics", make_asgi_app(registry=metrics.registry))

    @app.get("/health")
    def health():
        """Liveness probe - returns 200 if the service is running."""
        return health_checker.liveness()

    @app.get("/health/ready")
    def health_ready():
        """
        Readiness probe.

        Returns:
            200: Service is ready to handle traffic
            503: Service is not ready
        """
        metrics.update_system_metrics()
        result = health_checker.readiness()
        status_code = 200 if result["status"] == "ready" else 503
        return JSONResponse(result, status_code=status_code)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "hookguard.main:app",
        host="0.0.0.0",
        port=get_settings().SERVICE_PORT,
    )
