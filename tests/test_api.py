"""Tests for the webhook HTTP API."""
import uuid

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from hookguard.security import SignatureVerifier, canonical_payload
from tests.conftest import TEST_SECRET

WEBHOOKS = "/api/v1/webhooks"


def _body(source="stripe", event_type="payment.completed", payload=None):
    return {"source": source, "eventType": event_type, "payload": payload or {"amount": 1999}}


def _sign(body, secret=TEST_SECRET):
    canonical = canonical_payload(body["source"], body["eventType"], body["payload"])
    return SignatureVerifier(secret).sign(canonical)


class TestReceive:
    """POST /api/v1/webhooks"""

    def test_signed_webhook_accepted(self, client):
        body = _body()
        r = client.post(WEBHOOKS, json=body, headers={"x-webhook-signature": _sign(body)})

        assert r.status_code == 201
        data = r.json()
        assert data["message"] == "Webhook received"
        uuid.UUID(data["id"])

        stored = client.get(f"{WEBHOOKS}/{data['id']}").json()
        assert stored["verified"] is True
        assert stored["source"] == "stripe"
        assert stored["eventType"] == "payment.completed"
        assert stored["payload"] == {"amount": 1999}
        assert stored["providedTag"] == _sign(body)
        assert "receivedAt" in stored

    def test_bad_signature_still_accepted(self, client):
        r = client.post(WEBHOOKS, json=_body(), headers={"x-webhook-signature": "deadbeef"})

        assert r.status_code == 201
        stored = client.get(f"{WEBHOOKS}/{r.json()['id']}").json()
        assert stored["verified"] is False

    def test_unsigned_webhook_accepted(self, client):
        r = client.post(WEBHOOKS, json=_body())

        assert r.status_code == 201
        stored = client.get(f"{WEBHOOKS}/{r.json()['id']}").json()
        assert stored["verified"] is False
        assert stored["providedTag"] is None

    def test_signature_ignores_payload_key_order(self, client):
        body = _body(payload={"b": 1, "a": {"y": 2, "x": 3}})
        tag = _sign(_body(payload={"a": {"x": 3, "y": 2}, "b": 1}))
        r = client.post(WEBHOOKS, json=body, headers={"x-webhook-signature": tag})

        assert client.get(f"{WEBHOOKS}/{r.json()['id']}").json()["verified"] is True

    @pytest.mark.parametrize(
        "body",
        [
            {"eventType": "push", "payload": {"a": 1}},
            {"source": "github", "payload": {"a": 1}},
            {"source": "github", "eventType": "push"},
            {"source": "", "eventType": "push", "payload": {"a": 1}},
            {"source": "x" * 101, "eventType": "push", "payload": {"a": 1}},
            {"source": "github", "eventType": "e" * 101, "payload": {"a": 1}},
            {"source": "github", "eventType": "push", "payload": {}},
            {"source": "github", "eventType": "push", "payload": "not-an-object"},
            {"source": "github", "eventType": "push", "payload": [1, 2]},
            {"source": "github", "eventType": "push", "payload": {"a": 1}, "extra": True},
        ],
    )
    def test_invalid_body_rejected(self, client, body):
        r = client.post(WEBHOOKS, json=body)

        assert r.status_code == 400
        data = r.json()
        assert data["error"] == "ValidationError"
        assert data["details"]

    def test_max_length_fields_accepted(self, client):
        r = client.post(WEBHOOKS, json=_body(source="s" * 100, event_type="e" * 100))
        assert r.status_code == 201

    def test_integer_wider_than_64_bits_rejected(self, app_factory):
        client = TestClient(app_factory(RATE_LIMIT_MAX=1))
        body = _body(payload={"n": 123456789012345678901234567890})

        r = client.post(WEBHOOKS, json=body)
        assert r.status_code == 400
        assert client.get(WEBHOOKS).json()["count"] == 0

        # the rejected body did not use up the caller's budget
        assert client.post(WEBHOOKS, json=_body()).status_code == 201


class TestRateLimit:
    """Admission control on submissions."""

    def test_third_request_rejected(self, app_factory):
        client = TestClient(app_factory(RATE_LIMIT_MAX=2, RATE_LIMIT_WINDOW_MS=60000))

        assert client.post(WEBHOOKS, json=_body()).status_code == 201
        assert client.post(WEBHOOKS, json=_body()).status_code == 201
        r = client.post(WEBHOOKS, json=_body())

        assert r.status_code == 429
        data = r.json()
        assert data["message"] == "Too many requests"
        assert data["error"] == "TooManyRequests"
        assert data["retryAfterSeconds"] >= 1
        assert int(r.headers["retry-after"]) == data["retryAfterSeconds"]

    def test_rejected_request_is_not_stored(self, app_factory):
        app = app_factory(RATE_LIMIT_MAX=1)
        client = TestClient(app)
        client.post(WEBHOOKS, json=_body())
        client.post(WEBHOOKS, json=_body())

        assert app.state.intake.store.count() == 1
        assert client.get(WEBHOOKS).json()["count"] == 1

    def test_forwarded_for_buckets(self, app_factory):
        client = TestClient(app_factory(RATE_LIMIT_MAX=1))

        first = client.post(WEBHOOKS, json=_body(), headers={"x-forwarded-for": "203.0.113.1"})
        second = client.post(
            WEBHOOKS, json=_body(), headers={"x-forwarded-for": "203.0.113.2, 10.0.0.1"}
        )
        repeat = client.post(WEBHOOKS, json=_body(), headers={"x-forwarded-for": "203.0.113.1"})

        assert first.status_code == 201
        assert second.status_code == 201
        assert repeat.status_code == 429

    def test_reads_are_not_rate_limited(self, app_factory):
        client = TestClient(app_factory(RATE_LIMIT_MAX=1))
        event_id = client.post(WEBHOOKS, json=_body()).json()["id"]

        for _ in range(5):
            assert client.get(WEBHOOKS).status_code == 200
            assert client.get(f"{WEBHOOKS}/{event_id}").status_code == 200


class TestList:
    """GET /api/v1/webhooks"""

    def test_empty(self, client):
        r = client.get(WEBHOOKS)

        assert r.status_code == 200
        assert r.json() == {"items": [], "count": 0, "page": 1, "limit": 10, "totalPages": 0}

    def test_pagination(self, client):
        for i in range(25):
            client.post(WEBHOOKS, json=_body(payload={"i": i}))

        data = client.get(WEBHOOKS, params={"page": 2, "limit": 10}).json()
        assert data["count"] == 10
        assert len(data["items"]) == 10
        assert data["page"] == 2
        assert data["limit"] == 10
        assert data["totalPages"] == 3
        # newest first: page 2 holds i = 14..5
        assert [item["payload"]["i"] for item in data["items"]] == list(range(14, 4, -1))

    def test_defaults(self, client):
        for i in range(12):
            client.post(WEBHOOKS, json=_body(payload={"i": i}))

        data = client.get(WEBHOOKS).json()
        assert data["page"] == 1
        assert data["limit"] == 10
        assert data["count"] == 10
        assert data["items"][0]["payload"] == {"i": 11}

    def test_page_beyond_end(self, client):
        client.post(WEBHOOKS, json=_body())

        data = client.get(WEBHOOKS, params={"page": 9}).json()
        assert data["items"] == []
        assert data["count"] == 0
        assert data["totalPages"] == 1

    def test_filters(self, client):
        client.post(WEBHOOKS, json=_body("stripe", "payment.completed"))
        client.post(WEBHOOKS, json=_body("github", "push"))
        client.post(WEBHOOKS, json=_body("stripe", "payment.failed"))

        by_source = client.get(WEBHOOKS, params={"source": "stripe"}).json()
        assert by_source["count"] == 2
        assert {i["source"] for i in by_source["items"]} == {"stripe"}

        both = client.get(
            WEBHOOKS, params={"source": "stripe", "eventType": "payment.completed"}
        ).json()
        assert both["count"] == 1
        assert both["items"][0]["eventType"] == "payment.completed"

    def test_empty_filters_are_ignored(self, client):
        client.post(WEBHOOKS, json=_body("stripe", "payment.completed"))
        client.post(WEBHOOKS, json=_body("github", "push"))

        data = client.get(WEBHOOKS, params={"source": "", "eventType": ""}).json()
        assert data["count"] == 2
        assert data["totalPages"] == 1

    @pytest.mark.parametrize(
        "params",
        [{"page": 0}, {"page": -1}, {"limit": 0}, {"limit": 101}, {"page": "abc"}],
    )
    def test_invalid_query(self, client, params):
        r = client.get(WEBHOOKS, params=params)

        assert r.status_code == 400
        assert r.json()["error"] == "ValidationError"

    def test_limit_upper_bound(self, client):
        assert client.get(WEBHOOKS, params={"limit": 100}).status_code == 200


class TestGetAndDelete:
    """GET/DELETE /api/v1/webhooks/{id}"""

    @pytest.mark.parametrize("event_id", ["not-a-uuid", str(uuid.uuid4()), "1" * 36])
    def test_get_not_found(self, client, event_id):
        r = client.get(f"{WEBHOOKS}/{event_id}")

        assert r.status_code == 404
        assert r.json()["message"] == "Webhook not found"

    def test_malformed_and_unknown_are_indistinguishable(self, client):
        malformed = client.get(f"{WEBHOOKS}/garbage").json()
        unknown = client.get(f"{WEBHOOKS}/{uuid.uuid4()}").json()

        for key in ("error", "message", "status_code"):
            assert malformed[key] == unknown[key]

    def test_delete_then_not_found(self, client):
        event_id = client.post(WEBHOOKS, json=_body()).json()["id"]

        r = client.delete(f"{WEBHOOKS}/{event_id}")
        assert r.status_code == 200
        assert r.json() == {"message": "Webhook deleted successfully"}

        assert client.delete(f"{WEBHOOKS}/{event_id}").status_code == 404
        assert client.get(f"{WEBHOOKS}/{event_id}").status_code == 404

    def test_delete_malformed_id(self, client):
        r = client.delete(f"{WEBHOOKS}/not-a-uuid")

        assert r.status_code == 404
        assert r.json()["message"] == "Webhook not found"

    def test_stored_payload_cannot_be_changed_by_readers(self, app):
        client = TestClient(app)
        event_id = client.post(WEBHOOKS, json=_body(payload={"a": 1})).json()["id"]

        app.state.intake.get_event(event_id).payload["a"] = 2
        app.state.intake.list_events().items[0].payload["a"] = 3

        assert client.get(f"{WEBHOOKS}/{event_id}").json()["payload"] == {"a": 1}


class TestEviction:
    """Capacity bound over HTTP."""

    def test_oldest_evicted(self, app_factory):
        client = TestClient(app_factory(MAX_WEBHOOKS_STORAGE=3))
        ids = [client.post(WEBHOOKS, json=_body(payload={"i": i})).json()["id"] for i in range(4)]

        assert client.get(f"{WEBHOOKS}/{ids[0]}").status_code == 404
        for event_id in ids[1:]:
            assert client.get(f"{WEBHOOKS}/{event_id}").status_code == 200
        assert client.get(WEBHOOKS).json()["count"] == 3


@pytest.mark.asyncio
async def test_async_client_round_trip(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        body = _body("github", "push")
        r = await client.post(WEBHOOKS, json=body, headers={"x-webhook-signature": _sign(body)})
        assert r.status_code == 201

        listing = await client.get(WEBHOOKS, params={"source": "github"})
        assert listing.json()["items"][0]["verified"] is True
