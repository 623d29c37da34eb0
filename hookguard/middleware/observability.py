"""
Request logging and Prometheus HTTP metrics.
"""
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
import structlog

log = structlog.get_logger()


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect HTTP metrics and log each request once.

    - Records request count by method, route, status
    - Records request duration histogram
    - Tracks active requests
    - Logs status, duration, client address and user agent
    """

    def __init__(self, app, metrics):
        super().__init__(app)
        self.metrics = metrics

    @staticmethod
    def _route_path(request: Request) -> str:
        # route template keeps label cardinality bounded (/webhooks/{event_id})
        route = request.scope.get("route")
        return getattr(route, "path", request.url.path)

    async def dispatch(self, request: Request, call_next):
        # Skip metrics endpoint to avoid recursion
        if request.url.path.startswith("/metrics"):
            return await call_next(request)

        active = self.metrics.http_requests_active.labels(service=self.metrics.service_name)
        active.inc()
        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else None
        user_agent = request.headers.get("user-agent", "")

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.perf_counter() - start_time
            self.metrics.http_requests_total.labels(
                service=self.metrics.service_name,
                method=request.method,
                path=self._route_path(request),
                status=500,
            ).inc()
            log.error(
                "http_request_error",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round(duration * 1000, 2),
                client_ip=client_ip,
            )
            raise
        finally:
            active.dec()

        duration = time.perf_counter() - start_time
        path = self._route_path(request)
        self.metrics.http_requests_total.labels(
            service=self.metrics.service_name,
            method=request.method,
            path=path,
            status=response.status_code,
        ).inc()
        self.metrics.http_request_duration.labels(
            service=self.metrics.service_name,
            method=request.method,
            path=path,
        ).observe(duration)

        log.info(
            "http_request",
            http_status=response.status_code,
            duration_ms=round(duration * 1000, 2),
            content_length=response.headers.get("content-length", "0"),
            client_ip=client_ip,
            user_agent=user_agent,
        )
        return response
