"""Webhook intake: rate limit, verify, stamp and store."""
import copy
import re
import threading
import uuid
from datetime import datetime, timezone
from typing import Callable

import structlog

from ..config import Settings
from ..event_models import Event, InboundWebhook
from ..metrics import Metrics
from ..security.rate_limiter import RateLimiter, RateLimitExceeded
from ..security.signature import SignatureVerifier, canonical_payload
from ..storage.base import EventStore, QueryResult
from ..storage.memory import BoundedEventStore

log = structlog.get_logger()

_UUID4_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


class EventNotFoundError(Exception):
    """Raised for unknown and for malformed event ids alike."""

    def __init__(self, event_id: str):
        super().__init__("Webhook not found")
        self.event_id = event_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IntakeGuard:
    """
    Sequences RateLimiter -> SignatureVerifier -> EventStore for submissions.

    Reads and deletes go straight to the store.
    """

    def __init__(
        self,
        limiter: RateLimiter,
        verifier: SignatureVerifier,
        store: EventStore,
        metrics: Metrics | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.limiter = limiter
        self.verifier = verifier
        self.store = store
        self._metrics = metrics
        self._clock = clock
        self._stamp_lock = threading.Lock()
        self._last_received_at: datetime | None = None

    def accept(self, inbound: InboundWebhook, provided_tag: str | None, client_identity: str) -> Event:
        """
        Admit, verify and store one webhook.

        Args:
            inbound: Validated submission
            provided_tag: Raw ``x-webhook-signature`` header value, if any
            client_identity: Rate limit bucket for the caller

        Returns:
            The stored event

        Raises:
            RateLimitExceeded: If the caller is over its budget; nothing is stored
        """
        decision = self.limiter.check(client_identity)
        if not decision.allowed:
            log.warning(
                "rate_limit.exceeded",
                client=client_identity,
                retry_after_seconds=decision.retry_after_seconds,
            )
            if self._metrics:
                self._metrics.record_rate_limited()
            raise RateLimitExceeded(decision.retry_after_seconds, client=client_identity)

        canonical = canonical_payload(inbound.source, inbound.event_type, inbound.payload)
        if self.verifier.enabled and not provided_tag:
            log.warning("signature.missing", source=inbound.source)
        verified = self.verifier.verify(canonical, provided_tag)
        payload = copy.deepcopy(inbound.payload)

        with self._stamp_lock:
            received_at = self._clock()
            # keep received_at non-decreasing in insertion order
            if self._last_received_at is not None and received_at < self._last_received_at:
                received_at = self._last_received_at
            self._last_received_at = received_at

            event = Event(
                id=str(uuid.uuid4()),
                source=inbound.source,
                event_type=inbound.event_type,
                payload=payload,
                received_at=received_at,
                provided_tag=provided_tag,
                verified=verified,
            )
            self.store.save(event)

        log.info(
            "webhook.received",
            id=event.id,
            source=event.source,
            event_type=event.event_type,
            verified=verified,
        )
        if self._metrics:
            self._metrics.record_webhook_received(event.source, verified, len(canonical))
            self._metrics.set_stored_webhooks(self.store.count())
        return event

    def list_events(
        self,
        page: int = 1,
        limit: int = 10,
        source: str | None = None,
        event_type: str | None = None,
    ) -> QueryResult:
        return self.store.query(page=page, limit=limit, source=source, event_type=event_type)

    def get_event(self, event_id: str) -> Event:
        if not _UUID4_RE.match(event_id):
            raise EventNotFoundError(event_id)
        event = self.store.get_by_id(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    def delete_event(self, event_id: str) -> None:
        if not _UUID4_RE.match(event_id) or not self.store.delete(event_id):
            raise EventNotFoundError(event_id)
        if self._metrics:
            self._metrics.set_stored_webhooks(self.store.count())


def build_intake_guard(settings: Settings, metrics: Metrics | None = None) -> IntakeGuard:
    """
    Build the limiter, verifier and store from one settings value.

    Args:
        settings: Loaded configuration
        metrics: Optional Prometheus metrics to report to

    Returns:
        A ready IntakeGuard
    """
    if not settings.WEBHOOK_SECRET:
        log.warning("signature.disabled", reason="WEBHOOK_SECRET not configured")

    on_evict = (lambda _event: metrics.record_evicted()) if metrics else None
    store = BoundedEventStore(capacity=settings.MAX_WEBHOOKS_STORAGE, on_evict=on_evict)
    limiter = RateLimiter(
        max_requests=settings.RATE_LIMIT_MAX,
        window_ms=settings.RATE_LIMIT_WINDOW_MS,
        prune_threshold=settings.RATE_LIMIT_PRUNE_THRESHOLD,
    )
    verifier = SignatureVerifier(settings.WEBHOOK_SECRET)

    log.info(
        "intake.configured",
        capacity=store.capacity,
        rate_limit_max=limiter.max_requests,
        rate_limit_window_ms=limiter.window_ms,
        signature_verification=verifier.enabled,
    )
    return IntakeGuard(limiter=limiter, verifier=verifier, store=store, metrics=metrics)
