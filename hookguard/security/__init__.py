"""
Intake protection: signature verification and per-client rate limiting.
"""

from .signature import SignatureVerifier, canonical_payload, SIGNATURE_HEADER
from .rate_limiter import (
    RateLimiter,
    RateLimitDecision,
    RateLimitExceeded,
    resolve_client_identity,
)

__all__ = [
    "SignatureVerifier",
    "canonical_payload",
    "SIGNATURE_HEADER",
    "RateLimiter",
    "RateLimitDecision",
    "RateLimitExceeded",
    "resolve_client_identity",
]
