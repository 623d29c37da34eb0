from .correlation import CorrelationMiddleware, get_correlation_id
from .error_handler import register_exception_handlers
from .observability import MetricsMiddleware
from .security_headers import SecurityHeadersMiddleware
from .validation import ValidationMiddleware

__all__ = [
    "CorrelationMiddleware",
    "get_correlation_id",
    "register_exception_handlers",
    "MetricsMiddleware",
    "SecurityHeadersMiddleware",
    "ValidationMiddleware",
]
