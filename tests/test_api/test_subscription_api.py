"""Tests for subscription API endpoints."""

import pytest
from fastapi.testclient import TestClient

from webhook_subscriptions.api.app import create_app
from webhook_subscriptions.config import Settings
from webhook_subscriptions.subscriptions.service import (
    SubscriptionService,
    set_subscription_service,
)
from webhook_subscriptions.subscriptions.store import InMemorySubscriptionStore

HEADERS = {"X-Caller-Id": "42"}

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def service():
    """Create a service over an in-memory store."""
    svc = SubscriptionService(InMemorySubscriptionStore())
    yield svc
    set_subscription_service(None)


@pytest.fixture
def client(service):
    """Create test client bound to the test service."""
    app = create_app(service=service)
    return TestClient(app)


@pytest.fixture
def subscription_id(client):
    """Create a subscription and return its id."""
    response = client.post(
        "/webhooks/subscriptions",
        json={
            "name": "orders",
            "events": ["order.created"],
            "config": {"url": "https://a.test/hook"},
        },
        headers=HEADERS,
    )
    assert response.status_code == 201
    return response.json()["subscriptions"][0]["id"]


def history_payload(subscription_id: str, result_id: str, status_code: int) -> dict:
    """Build a history update body."""
    return {
        "results": [
            {
                "id": result_id,
                "subscription_id": subscription_id,
                "status_code": status_code,
                "attempted_date_utc": "2024-01-01T12:00:00Z",
            }
        ]
    }


# ============================================================================
# Create Tests
# ============================================================================


class TestCreateSubscription:
    """Tests for POST /webhooks/subscriptions."""

    def test_create(self, client):
        """Test creating subscriptions for several events."""
        response = client.post(
            "/webhooks/subscriptions",
            json={
                "name": "orders",
                "events": ["order.created", "order.paid"],
                "config": {"url": "https://a.test/hook", "secret": "c2VjcmV0"},
            },
            headers=HEADERS,
        )

        assert response.status_code == 201
        data = response.json()
        assert len(data["subscriptions"]) == 2
        first = data["subscriptions"][0]
        assert first["is_active"] is True
        assert first["created_by_id"] == "42"
        assert first["config"]["content_type"] == "application/json"

    def test_duplicate_conflicts(self, client, subscription_id):  # noqa: ARG002
        """Test a second registration for the same event returns 409."""
        response = client.post(
            "/webhooks/subscriptions",
            json={
                "name": "orders",
                "events": ["order.created"],
                "config": {"url": "https://a.test/hook"},
            },
            headers=HEADERS,
        )

        assert response.status_code == 409
        data = response.json()
        assert data["error_type"] == "SubscriptionConflictError"
        assert data["details"]["event"] == "order.created"
        assert data["details"]["created_ids"] == []

    def test_partial_batch_reports_created_ids(self, client, subscription_id):
        """Test a 409 lists subscriptions created before the conflicting event."""
        response = client.post(
            "/webhooks/subscriptions",
            json={
                "name": "orders",
                "events": ["order.paid", "order.created"],
                "config": {"url": "https://a.test/hook"},
            },
            headers=HEADERS,
        )

        assert response.status_code == 409
        created_ids = response.json()["details"]["created_ids"]
        assert len(created_ids) == 1

        listed = client.get("/webhooks/subscriptions", headers=HEADERS).json()
        assert sorted(s["id"] for s in listed["subscriptions"]) == sorted(
            [subscription_id, created_ids[0]]
        )

    def test_invalid_body(self, client):
        """Test validation failures return 422."""
        response = client.post(
            "/webhooks/subscriptions",
            json={"name": "orders", "events": [], "config": {"url": "nope"}},
            headers=HEADERS,
        )

        assert response.status_code == 422

    def test_missing_caller(self, client):
        """Test requests without a caller are rejected."""
        response = client.get("/webhooks/subscriptions")

        assert response.status_code == 401


# ============================================================================
# Read Tests
# ============================================================================


class TestReadSubscriptions:
    """Tests for GET endpoints."""

    def test_list(self, client, subscription_id):
        """Test listing the caller's subscriptions."""
        response = client.get("/webhooks/subscriptions", headers=HEADERS)

        assert response.status_code == 200
        assert [s["id"] for s in response.json()["subscriptions"]] == [subscription_id]

    def test_list_other_caller_empty(self, client, subscription_id):  # noqa: ARG002
        """Test another caller sees nothing."""
        response = client.get("/webhooks/subscriptions", headers={"X-Caller-Id": "7"})

        assert response.json()["subscriptions"] == []

    def test_get(self, client, subscription_id):
        """Test getting a subscription with empty history."""
        response = client.get(f"/webhooks/subscriptions/{subscription_id}", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["subscription"]["id"] == subscription_id
        assert data["history"] == []

    def test_get_not_found(self, client):
        """Test getting an unknown subscription returns 404."""
        response = client.get("/webhooks/subscriptions/missing", headers=HEADERS)

        assert response.status_code == 404
        assert response.json()["error_type"] == "SubscriptionNotFoundError"

    def test_search(self, client, subscription_id):
        """Test searching subscribers of an event."""
        response = client.get(
            "/webhooks/subscriptions/search",
            params={"event": "order.created"},
            headers={"X-Caller-Id": "relay"},
        )

        assert response.status_code == 200
        subscribers = response.json()["subscribers"]
        assert [s["subscription_id"] for s in subscribers] == [subscription_id]


# ============================================================================
# Update / Delete Tests
# ============================================================================


class TestModifySubscriptions:
    """Tests for PUT and DELETE endpoints."""

    def test_update(self, client, subscription_id):
        """Test updating the URL and deactivating."""
        response = client.put(
            f"/webhooks/subscriptions/{subscription_id}",
            json={"url": "https://b.test/hook", "is_active": False},
            headers=HEADERS,
        )

        assert response.status_code == 200
        data = response.json()["subscription"]
        assert data["config"]["url"] == "https://b.test/hook"
        assert data["is_active"] is False

    def test_update_not_found(self, client):
        """Test updating an unknown subscription returns 404."""
        response = client.put(
            "/webhooks/subscriptions/missing",
            json={"is_active": False},
            headers=HEADERS,
        )

        assert response.status_code == 404

    def test_delete(self, client, subscription_id):
        """Test deleting a subscription."""
        response = client.delete(f"/webhooks/subscriptions/{subscription_id}", headers=HEADERS)
        assert response.status_code == 204

        response = client.get(f"/webhooks/subscriptions/{subscription_id}", headers=HEADERS)
        assert response.status_code == 404

    def test_delete_not_found(self, client):
        """Test deleting an unknown subscription returns 404."""
        response = client.delete("/webhooks/subscriptions/missing", headers=HEADERS)

        assert response.status_code == 404


# ============================================================================
# History Tests
# ============================================================================


class TestSubscriptionHistory:
    """Tests for history endpoints."""

    def test_client_error_deactivates(self, client, subscription_id):
        """Test a reported 404 deactivates the subscription."""
        response = client.put(
            "/webhooks/subscriptions/history",
            json=history_payload(subscription_id, "r1", 404),
            headers=HEADERS,
        )
        assert response.status_code == 200

        data = client.get(f"/webhooks/subscriptions/{subscription_id}", headers=HEADERS).json()
        assert data["subscription"]["is_active"] is False
        assert [r["id"] for r in data["history"]] == ["r1"]

    def test_reporting_twice_stores_once(self, client, subscription_id):
        """Test repeated results are idempotent."""
        for _ in range(2):
            client.put(
                "/webhooks/subscriptions/history",
                json=history_payload(subscription_id, "r1", 200),
                headers=HEADERS,
            )

        response = client.get(
            f"/webhooks/subscriptions/{subscription_id}/history", headers=HEADERS
        )

        assert response.status_code == 200
        assert len(response.json()["results"]) == 1

    def test_empty_results(self, client):
        """Test an empty batch succeeds."""
        response = client.put(
            "/webhooks/subscriptions/history",
            json={"results": []},
            headers=HEADERS,
        )

        assert response.status_code == 200

    def test_invalid_result(self, client):
        """Test a result without required fields is rejected."""
        response = client.put(
            "/webhooks/subscriptions/history",
            json={"results": [{"id": "r1", "status_code": 200}]},
            headers=HEADERS,
        )

        assert response.status_code == 422


# ============================================================================
# Application Tests
# ============================================================================


class TestApplication:
    """Tests for application setup."""

    def test_health(self, client):
        """Test the liveness endpoint."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_lifespan_builds_configured_store(self, tmp_path):
        """Test startup creates and initializes the configured store."""
        set_subscription_service(None)
        app_settings = Settings(
            SUBSCRIPTION_STORE="sqlite",
            SUBSCRIPTION_DB_PATH=str(tmp_path / "app.db"),
        )
        app = create_app(app_settings)

        try:
            with TestClient(app) as client:
                created = client.post(
                    "/webhooks/subscriptions",
                    json={
                        "name": "orders",
                        "events": ["order.created"],
                        "config": {"url": "https://a.test/hook"},
                    },
                    headers=HEADERS,
                )
                assert created.status_code == 201

                listed = client.get("/webhooks/subscriptions", headers=HEADERS)
                assert len(listed.json()["subscriptions"]) == 1
        finally:
            set_subscription_service(None)

        assert (tmp_path / "app.db").exists()
