"""Tests for the SQLite subscription store."""

import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from webhook_subscriptions.errors import SubscriptionConflictError
from webhook_subscriptions.subscriptions.history import DeliveryHistoryReconciler
from webhook_subscriptions.subscriptions.messages import (
    CreateSubscriptionRequest,
    SubscriptionConfigRequest,
    UpdateSubscriptionHistoryRequest,
    UpdateSubscriptionRequest,
)
from webhook_subscriptions.subscriptions.models import (
    Caller,
    SubscriptionConfig,
    SubscriptionDeliveryResult,
    WebhookSubscription,
)
from webhook_subscriptions.subscriptions.service import SubscriptionService
from webhook_subscriptions.subscriptions.sqlite_store import SqliteSubscriptionStore

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


def make_subscription(user_id: str = "42", event: str = "order.created") -> WebhookSubscription:
    """Build an unsaved subscription."""
    return WebhookSubscription(
        name="orders",
        event=event,
        created_by_id=user_id,
        created_date_utc=BASE_TIME,
        last_modified_date_utc=BASE_TIME,
        config=SubscriptionConfig(url="https://a.test/hook", secret="c2VjcmV0"),
    )


def make_result(result_id: str, subscription_id: str, offset_seconds: int = 0, status_code: int = 200):
    """Build a delivery result."""
    return SubscriptionDeliveryResult(
        id=result_id,
        subscription_id=subscription_id,
        status_code=status_code,
        attempted_date_utc=BASE_TIME + timedelta(seconds=offset_seconds),
    )


class TestSqliteSubscriptionStore:
    """Tests for SqliteSubscriptionStore."""

    @pytest.fixture
    async def store(self) -> SqliteSubscriptionStore:
        """Create a temporary subscription store for tests."""
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = str(Path(tmpdir) / "test_subscriptions.db")
            store = SqliteSubscriptionStore(db_path=db_path)
            await store.initialize()
            yield store
            await store.close()

    @pytest.mark.asyncio
    async def test_initialize_creates_tables(self, store: SqliteSubscriptionStore) -> None:
        """Test that initialization creates required tables."""
        assert store._connection is not None

    @pytest.mark.asyncio
    async def test_add_and_get(self, store: SqliteSubscriptionStore) -> None:
        """Test saving and retrieving a subscription."""
        subscription_id = await store.add(make_subscription())

        retrieved = await store.get(subscription_id)

        assert retrieved is not None
        assert retrieved.id == subscription_id
        assert retrieved.event == "order.created"
        assert retrieved.is_active is True
        assert retrieved.config.secret == "c2VjcmV0"
        assert retrieved.created_date_utc == BASE_TIME

    @pytest.mark.asyncio
    async def test_get_nonexistent(self, store: SqliteSubscriptionStore) -> None:
        """Test getting a nonexistent subscription returns None."""
        assert await store.get("nonexistent-id") is None

    @pytest.mark.asyncio
    async def test_unique_owner_event(self, store: SqliteSubscriptionStore) -> None:
        """Test the schema rejects a second subscription for the same pair."""
        await store.add(make_subscription())

        with pytest.raises(SubscriptionConflictError):
            await store.add(make_subscription())

        assert len(await store.find("42")) == 1

    @pytest.mark.asyncio
    async def test_find_and_get_by_event(self, store: SqliteSubscriptionStore) -> None:
        """Test owner-scoped lookups."""
        await store.add(make_subscription("1", "order.created"))
        await store.add(make_subscription("1", "order.paid"))
        await store.add(make_subscription("2", "order.created"))

        assert len(await store.find("1")) == 2
        assert await store.find("3") == []
        found = await store.get_by_event("2", "order.created")
        assert found is not None
        assert found.created_by_id == "2"

    @pytest.mark.asyncio
    async def test_update(self, store: SqliteSubscriptionStore) -> None:
        """Test updating persists config and active flag."""
        subscription_id = await store.add(make_subscription())
        subscription = await store.get(subscription_id)
        subscription.is_active = False
        subscription.config.url = "https://b.test/hook"
        subscription.last_modified_date_utc = BASE_TIME + timedelta(minutes=1)

        await store.update(subscription_id, subscription)

        stored = await store.get(subscription_id)
        assert stored.is_active is False
        assert stored.config.url == "https://b.test/hook"
        assert stored.last_modified_date_utc == BASE_TIME + timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_search_active_only(self, store: SqliteSubscriptionStore) -> None:
        """Test event search across owners."""
        await store.add(make_subscription("1"))
        inactive_id = await store.add(make_subscription("2"))
        inactive = await store.get(inactive_id)
        inactive.is_active = False
        await store.update(inactive_id, inactive)

        assert len(await store.search("order.created", True)) == 1
        assert len(await store.search("order.created", False)) == 2
        assert await store.search("order.unknown", True) == []

    @pytest.mark.asyncio
    async def test_delete_keeps_history(self, store: SqliteSubscriptionStore) -> None:
        """Test deleting a subscription leaves its history."""
        subscription_id = await store.add(make_subscription())
        await store.add_history(subscription_id, make_result("r1", subscription_id))

        await store.delete(subscription_id)

        assert await store.get(subscription_id) is None
        assert len(await store.search_history(subscription_id, 10)) == 1

    @pytest.mark.asyncio
    async def test_search_history_order_and_limit(self, store: SqliteSubscriptionStore) -> None:
        """Test history comes back newest first and limited."""
        subscription_id = await store.add(make_subscription())
        for i, offset in enumerate([30, 10, 20]):
            await store.add_history(subscription_id, make_result(f"r{i}", subscription_id, offset))

        history = await store.search_history(subscription_id, 2)

        assert [r.id for r in history] == ["r0", "r2"]

    @pytest.mark.asyncio
    async def test_add_history_ignores_stored_id(self, store: SqliteSubscriptionStore) -> None:
        """Test the same result id is stored once, regardless of case."""
        subscription_id = await store.add(make_subscription())

        assert await store.add_history(subscription_id, make_result("R1", subscription_id)) is True
        assert await store.add_history(subscription_id, make_result("r1", subscription_id, 5)) is False

        assert len(await store.search_history(subscription_id, 10)) == 1


class TestSqliteBackedService:
    """End-to-end scenario against the SQLite store."""

    @pytest.fixture
    async def service(self) -> SubscriptionService:
        """Create a service over a temporary SQLite database."""
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SqliteSubscriptionStore(db_path=str(Path(tmpdir) / "service.db"))
            await store.initialize()
            yield SubscriptionService(store)
            await store.close()

    @pytest.mark.asyncio
    async def test_client_error_deactivates(self, service: SubscriptionService) -> None:
        """Test a reported 404 deactivates and shows up in history."""
        caller = Caller(user_id="42")
        created = await service.create_subscription(
            caller,
            CreateSubscriptionRequest(
                name="orders",
                events=["order.created"],
                config=SubscriptionConfigRequest(url="https://a.test/hook"),
            ),
        )
        subscription_id = created.subscriptions[0].id

        await service.update_subscription_history(
            caller,
            UpdateSubscriptionHistoryRequest(
                results=[make_result("r1", subscription_id, status_code=404)]
            ),
        )

        response = await service.get_subscription(caller, subscription_id)
        assert response.subscription.is_active is False
        assert [r.id for r in response.history] == ["r1"]

    @pytest.mark.asyncio
    async def test_old_duplicate_outside_window_stored_once(
        self, service: SubscriptionService
    ) -> None:
        """Test the schema catches duplicates the batch-sized lookup misses."""
        caller = Caller(user_id="42")
        created = await service.create_subscription(
            caller,
            CreateSubscriptionRequest(
                name="orders",
                events=["order.created"],
                config=SubscriptionConfigRequest(url="https://a.test/hook"),
            ),
        )
        subscription_id = created.subscriptions[0].id

        await service.update_results([make_result("old", subscription_id, 0)])
        await service.update_results([make_result("newer", subscription_id, 10)])
        await service.update_results([make_result("old", subscription_id, 0)])

        history = await service.store.search_history(subscription_id, 10)
        assert sorted(r.id for r in history) == ["newer", "old"]

    @pytest.mark.asyncio
    async def test_old_client_error_reported_again_keeps_subscription_active(
        self, service: SubscriptionService
    ) -> None:
        """Test a re-reported old 4xx neither counts nor deactivates again."""
        caller = Caller(user_id="42")
        created = await service.create_subscription(
            caller,
            CreateSubscriptionRequest(
                name="orders",
                events=["order.created"],
                config=SubscriptionConfigRequest(url="https://a.test/hook"),
            ),
        )
        subscription_id = created.subscriptions[0].id

        await service.update_results([make_result("r1", subscription_id, 0, status_code=404)])
        await service.update_results([make_result("r2", subscription_id, 10)])
        await service.update_subscription(
            caller, subscription_id, UpdateSubscriptionRequest(is_active=True)
        )

        reconciler = DeliveryHistoryReconciler(service.store)
        recorded = await reconciler.ingest([make_result("r1", subscription_id, 0, status_code=404)])

        assert recorded == 0
        history = await service.store.search_history(subscription_id, 10)
        assert [r.id for r in history] == ["r2", "r1"]
        fetched = await service.get_subscription(caller, subscription_id)
        assert fetched.subscription.is_active is True
