"""Subscription service facade.

Exposes one operation per inbound request type, plus the peer interface
the relay uses to discover subscribers and report delivery results.
The caller is always passed in explicitly.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Protocol

import structlog

from webhook_subscriptions.config import Settings, settings as default_settings
from webhook_subscriptions.subscriptions.history import DeliveryHistoryReconciler
from webhook_subscriptions.subscriptions.lifecycle import (
    DEFAULT_HISTORY_LIMIT,
    SubscriptionManager,
)
from webhook_subscriptions.subscriptions.messages import (
    CreateSubscriptionRequest,
    CreateSubscriptionResponse,
    DeleteSubscriptionResponse,
    GetSubscriptionResponse,
    ListSubscriptionsResponse,
    SearchSubscriptionHistoryResponse,
    SearchSubscriptionsRequest,
    SearchSubscriptionsResponse,
    UpdateSubscriptionHistoryRequest,
    UpdateSubscriptionHistoryResponse,
    UpdateSubscriptionRequest,
    UpdateSubscriptionResponse,
)
from webhook_subscriptions.subscriptions.models import (
    Caller,
    SubscriptionDeliveryResult,
    SubscriptionRelayConfig,
    utc_now_to_second,
)
from webhook_subscriptions.subscriptions.search import SubscriptionSearch
from webhook_subscriptions.subscriptions.sqlite_store import SqliteSubscriptionStore
from webhook_subscriptions.subscriptions.store import (
    InMemorySubscriptionStore,
    SafeSubscriptionStore,
    SubscriptionStore,
    safe_store,
)

logger = structlog.get_logger(__name__)


class SubscriptionRelayService(Protocol):
    """What the relay subsystem may call."""

    async def search(self, event_name: str) -> list[SubscriptionRelayConfig]:
        """Active subscribers of an event."""
        ...

    async def update_results(self, results: list[SubscriptionDeliveryResult]) -> None:
        """Report delivery results."""
        ...


class SubscriptionService:
    """Entry point for every subscription operation.

    Maps request models onto the subscription manager, the history
    reconciler and the search queries, and wraps their results in
    response models. Also implements ``SubscriptionRelayService``.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        *,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        clock: Callable[[], datetime] = utc_now_to_second,
    ) -> None:
        """Initialize the service.

        Args:
            store: Subscription store.
            history_limit: History entries returned with a subscription.
            clock: Source of the current UTC time, whole seconds.
        """
        self._store = safe_store(store)
        self._manager = SubscriptionManager(self._store, history_limit=history_limit, clock=clock)
        self._reconciler = DeliveryHistoryReconciler(self._store)
        self._search = SubscriptionSearch(self._store)
        self._logger = logger.bind(component="subscription_service")

    @property
    def store(self) -> SafeSubscriptionStore:
        """The store behind this service."""
        return self._store

    # Relay peer interface

    async def search(self, event_name: str) -> list[SubscriptionRelayConfig]:
        """Active subscribers of an event, for the relay."""
        return await self._search.search(event_name, active_only=True)

    async def update_results(self, results: list[SubscriptionDeliveryResult]) -> None:
        """Record delivery results pushed by the relay."""
        await self._reconciler.ingest(results)

    # Request operations

    async def search_subscriptions(
        self, caller: Caller, request: SearchSubscriptionsRequest
    ) -> SearchSubscriptionsResponse:
        """Search active subscribers of an event across all owners."""
        subscribers = await self._search.search(request.event_name, active_only=True)

        self._logger.info(
            "subscriptions_searched",
            event_name=request.event_name,
            user_id=caller.user_id,
            count=len(subscribers),
        )

        return SearchSubscriptionsResponse(subscribers=subscribers)

    async def create_subscription(
        self, caller: Caller, request: CreateSubscriptionRequest
    ) -> CreateSubscriptionResponse:
        """Subscribe the caller to each requested event."""
        subscriptions = await self._manager.create(
            caller,
            request.name,
            request.config.to_config(),
            request.events,
        )
        return CreateSubscriptionResponse(subscriptions=subscriptions)

    async def get_subscription(
        self, caller: Caller, subscription_id: str
    ) -> GetSubscriptionResponse:
        """Get a subscription and its recent history."""
        subscription, history = await self._manager.get(caller, subscription_id)
        return GetSubscriptionResponse(subscription=subscription, history=history)

    async def list_subscriptions(self, caller: Caller) -> ListSubscriptionsResponse:
        """List the caller's subscriptions."""
        subscriptions = await self._manager.list_owned(caller)
        return ListSubscriptionsResponse(subscriptions=subscriptions)

    async def update_subscription(
        self,
        caller: Caller,
        subscription_id: str,
        request: UpdateSubscriptionRequest,
    ) -> UpdateSubscriptionResponse:
        """Apply a partial update to a subscription."""
        subscription = await self._manager.update(
            caller,
            subscription_id,
            url=request.url,
            secret=request.secret,
            content_type=request.content_type,
            is_active=request.is_active,
        )
        return UpdateSubscriptionResponse(subscription=subscription)

    async def delete_subscription(
        self, caller: Caller, subscription_id: str
    ) -> DeleteSubscriptionResponse:
        """Delete a subscription."""
        await self._manager.delete(caller, subscription_id)
        return DeleteSubscriptionResponse()

    async def update_subscription_history(
        self, caller: Caller, request: UpdateSubscriptionHistoryRequest
    ) -> UpdateSubscriptionHistoryResponse:
        """Record a batch of delivery results.

        An empty batch is accepted and does nothing.
        """
        if request.results:
            recorded = await self._reconciler.ingest(request.results)

            self._logger.info(
                "subscription_history_added",
                user_id=caller.user_id,
                received=len(request.results),
                recorded=recorded,
            )

        return UpdateSubscriptionHistoryResponse()

    async def search_subscription_history(
        self, caller: Caller, subscription_id: str, limit: int
    ) -> SearchSubscriptionHistoryResponse:
        """Get up to ``limit`` most recent results of a subscription."""
        results = await self._search.search_history(subscription_id, limit)

        self._logger.info(
            "subscription_history_searched",
            subscription_id=subscription_id,
            user_id=caller.user_id,
            count=len(results),
        )

        return SearchSubscriptionHistoryResponse(results=results)


def create_store(settings: Settings) -> SubscriptionStore:
    """Create the store selected by settings.

    Args:
        settings: Application settings.

    Returns:
        An uninitialized store.

    Raises:
        ValueError: If the configured backend is unknown.
    """
    if settings.SUBSCRIPTION_STORE == "memory":
        return InMemorySubscriptionStore()
    if settings.SUBSCRIPTION_STORE == "sqlite":
        return SqliteSubscriptionStore(db_path=settings.SUBSCRIPTION_DB_PATH)
    raise ValueError(f"Unknown subscription store: {settings.SUBSCRIPTION_STORE}")


# Global subscription service instance
_subscription_service: SubscriptionService | None = None


def get_subscription_service() -> SubscriptionService:
    """Get the global subscription service instance.

    Returns:
        Singleton SubscriptionService, backed by an in-memory store if
        none was configured.
    """
    global _subscription_service
    if _subscription_service is None:
        _subscription_service = SubscriptionService(
            InMemorySubscriptionStore(),
            history_limit=default_settings.SUBSCRIPTION_HISTORY_LIMIT,
        )
    return _subscription_service


def has_subscription_service() -> bool:
    """Check whether a global subscription service has been set."""
    return _subscription_service is not None


def set_subscription_service(service: SubscriptionService | None) -> None:
    """Set the global subscription service instance.

    Useful for testing.

    Args:
        service: SubscriptionService instance, or None to reset.
    """
    global _subscription_service
    _subscription_service = service
