"""In-memory fixed window rate limiter keyed by client identity."""
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

import structlog

log = structlog.get_logger()

UNKNOWN_CLIENT = "unknown"


class RateLimitExceeded(Exception):
    """Raised when a client has used up its budget for the current window."""

    def __init__(self, retry_after_seconds: int, client: str | None = None):
        super().__init__("Too many requests")
        self.retry_after_seconds = retry_after_seconds
        self.client = client


@dataclass
class RateLimitRecord:
    count: int
    window_reset_at_ms: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after_seconds: int = 0


class RateLimiter:
    """
    Fixed window limiter: at most ``max_requests`` per identity per window.

    Windows expire lazily, on the identity's next request. Records are kept
    after expiry; once more than ``prune_threshold`` identities are tracked,
    the next check sweeps out the expired ones (0 disables the sweep).
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_ms: int = 60000,
        prune_threshold: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_ms < 1:
            raise ValueError("window_ms must be at least 1")
        self._max_requests = max_requests
        self._window_ms = window_ms
        self._prune_threshold = prune_threshold
        self._clock = clock
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_ms(self) -> int:
        return self._window_ms

    def check(self, identity: str) -> RateLimitDecision:
        """Count a request for ``identity`` and decide whether to admit it."""
        now_ms = self._clock() * 1000

        with self._lock:
            if self._prune_threshold and len(self._records) > self._prune_threshold:
                self._prune_expired(now_ms)

            record = self._records.get(identity)
            if record is None or now_ms > record.window_reset_at_ms:
                self._records[identity] = RateLimitRecord(
                    count=1, window_reset_at_ms=now_ms + self._window_ms
                )
                return RateLimitDecision(allowed=True, remaining=self._max_requests - 1)

            if record.count < self._max_requests:
                record.count += 1
                return RateLimitDecision(
                    allowed=True, remaining=self._max_requests - record.count
                )

            reset_at_ms = record.window_reset_at_ms

        retry_after = max(1, math.ceil((reset_at_ms - now_ms) / 1000))
        return RateLimitDecision(allowed=False, remaining=0, retry_after_seconds=retry_after)

    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._records)

    def reset(self):
        """Forget every client (test isolation / administrative reset)."""
        with self._lock:
            self._records.clear()

    def _prune_expired(self, now_ms: float):
        # caller holds the lock
        expired = [k for k, r in self._records.items() if now_ms > r.window_reset_at_ms]
        for key in expired:
            del self._records[key]
        if expired:
            log.info("rate_limit.pruned", removed=len(expired), remaining=len(self._records))


def resolve_client_identity(forwarded_for: str | None, peer_host: str | None) -> str:
    """
    Pick the identity a request is rate limited under.

    The first address of ``X-Forwarded-For`` wins when present. The header is
    trusted as-is, so deployments must strip it at a trusted edge. Requests
    with no usable address share the ``"unknown"`` bucket.
    """
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    if peer_host:
        return peer_host
    return UNKNOWN_CLIENT
