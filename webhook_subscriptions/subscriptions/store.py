"""Subscription persistence contract and in-memory implementation.

The store owns all durable state. Objects returned from a store are
copies; callers hand changes back with an explicit ``update``.
"""

import uuid

from webhook_subscriptions.errors import SubscriptionConflictError
from webhook_subscriptions.subscriptions.models import (
    SubscriptionDeliveryResult,
    WebhookSubscription,
)


class SubscriptionStore:
    """Abstract base class for subscription persistence.

    Collection-returning methods may return None when there is no data;
    wrap a store in ``SafeSubscriptionStore`` before handing it to the
    service layer.
    """

    async def initialize(self) -> None:
        """Prepare the store for use."""

    async def close(self) -> None:
        """Release any resources held by the store."""

    async def find(self, user_id: str) -> list[WebhookSubscription] | None:
        """Find all subscriptions owned by a user."""
        raise NotImplementedError

    async def get_by_event(self, user_id: str, event: str) -> WebhookSubscription | None:
        """Get the subscription a user holds for an event."""
        raise NotImplementedError

    async def get(self, subscription_id: str) -> WebhookSubscription | None:
        """Get a subscription by id."""
        raise NotImplementedError

    async def add(self, subscription: WebhookSubscription) -> str:
        """Add a subscription and return its assigned id."""
        raise NotImplementedError

    async def update(self, subscription_id: str, subscription: WebhookSubscription) -> None:
        """Replace the stored subscription with the given one."""
        raise NotImplementedError

    async def delete(self, subscription_id: str) -> None:
        """Delete a subscription by id."""
        raise NotImplementedError

    async def search(
        self, event: str, active_only: bool
    ) -> list[WebhookSubscription] | None:
        """Search subscriptions to an event across all owners."""
        raise NotImplementedError

    async def search_history(
        self, subscription_id: str, limit: int
    ) -> list[SubscriptionDeliveryResult] | None:
        """Get the most recent delivery results of a subscription."""
        raise NotImplementedError

    async def add_history(
        self, subscription_id: str, result: SubscriptionDeliveryResult
    ) -> bool:
        """Record a delivery result for a subscription.

        Returns:
            True if the result was stored, False if the store already
            held a result with the same id.
        """
        raise NotImplementedError


class InMemorySubscriptionStore(SubscriptionStore):
    """In-memory persistence for development and testing."""

    def __init__(self) -> None:
        """Initialize in-memory storage."""
        self._subscriptions: dict[str, WebhookSubscription] = {}
        self._history: dict[str, list[SubscriptionDeliveryResult]] = {}

    async def find(self, user_id: str) -> list[WebhookSubscription] | None:
        """Find all subscriptions owned by a user."""
        return [
            s.model_copy(deep=True)
            for s in self._subscriptions.values()
            if s.created_by_id == user_id
        ]

    async def get_by_event(self, user_id: str, event: str) -> WebhookSubscription | None:
        """Get the subscription a user holds for an event."""
        for subscription in self._subscriptions.values():
            if subscription.created_by_id == user_id and subscription.event == event:
                return subscription.model_copy(deep=True)
        return None

    async def get(self, subscription_id: str) -> WebhookSubscription | None:
        """Get a subscription by id."""
        subscription = self._subscriptions.get(subscription_id)
        return subscription.model_copy(deep=True) if subscription else None

    async def add(self, subscription: WebhookSubscription) -> str:
        """Add a subscription and return its assigned id."""
        if await self.get_by_event(subscription.created_by_id, subscription.event):
            raise SubscriptionConflictError(subscription.event)

        subscription_id = uuid.uuid4().hex
        stored = subscription.model_copy(deep=True)
        stored.id = subscription_id
        self._subscriptions[subscription_id] = stored
        return subscription_id

    async def update(self, subscription_id: str, subscription: WebhookSubscription) -> None:
        """Replace the stored subscription with the given one."""
        if subscription_id not in self._subscriptions:
            return
        stored = subscription.model_copy(deep=True)
        stored.id = subscription_id
        self._subscriptions[subscription_id] = stored

    async def delete(self, subscription_id: str) -> None:
        """Delete a subscription by id."""
        self._subscriptions.pop(subscription_id, None)

    async def search(
        self, event: str, active_only: bool
    ) -> list[WebhookSubscription] | None:
        """Search subscriptions to an event across all owners."""
        return [
            s.model_copy(deep=True)
            for s in self._subscriptions.values()
            if s.event == event and (s.is_active or not active_only)
        ]

    async def search_history(
        self, subscription_id: str, limit: int
    ) -> list[SubscriptionDeliveryResult] | None:
        """Get the most recent delivery results of a subscription."""
        results = self._history.get(subscription_id)
        if results is None:
            return None

        ordered = sorted(results, key=lambda r: r.attempted_date_utc, reverse=True)
        return [r.model_copy(deep=True) for r in ordered[:limit]]

    async def add_history(
        self, subscription_id: str, result: SubscriptionDeliveryResult
    ) -> bool:
        """Record a delivery result for a subscription."""
        self._history.setdefault(subscription_id, []).append(result.model_copy(deep=True))
        return True


class SafeSubscriptionStore(SubscriptionStore):
    """Boundary adapter that never lets an absent collection through.

    Every collection a wrapped store returns as None comes back as an
    empty list, so the service layer never sees a "no data" sentinel.
    Single-entity lookups keep returning None for a missing entity.
    """

    def __init__(self, inner: SubscriptionStore) -> None:
        """Wrap a store.

        Args:
            inner: Store to delegate to.
        """
        self._inner = inner

    @property
    def inner(self) -> SubscriptionStore:
        """The wrapped store."""
        return self._inner

    async def initialize(self) -> None:
        await self._inner.initialize()

    async def close(self) -> None:
        await self._inner.close()

    async def find(self, user_id: str) -> list[WebhookSubscription]:
        return list(await self._inner.find(user_id) or [])

    async def get_by_event(self, user_id: str, event: str) -> WebhookSubscription | None:
        return await self._inner.get_by_event(user_id, event)

    async def get(self, subscription_id: str) -> WebhookSubscription | None:
        return await self._inner.get(subscription_id)

    async def add(self, subscription: WebhookSubscription) -> str:
        return await self._inner.add(subscription)

    async def update(self, subscription_id: str, subscription: WebhookSubscription) -> None:
        await self._inner.update(subscription_id, subscription)

    async def delete(self, subscription_id: str) -> None:
        await self._inner.delete(subscription_id)

    async def search(self, event: str, active_only: bool) -> list[WebhookSubscription]:
        return list(await self._inner.search(event, active_only) or [])

    async def search_history(
        self, subscription_id: str, limit: int
    ) -> list[SubscriptionDeliveryResult]:
        return list(await self._inner.search_history(subscription_id, limit) or [])

    async def add_history(
        self, subscription_id: str, result: SubscriptionDeliveryResult
    ) -> bool:
        return await self._inner.add_history(subscription_id, result)


def safe_store(store: SubscriptionStore) -> SafeSubscriptionStore:
    """Wrap a store in the safe adapter unless it already is one.

    Args:
        store: Store to wrap.

    Returns:
        A store whose collections are never None.
    """
    if isinstance(store, SafeSubscriptionStore):
        return store
    return SafeSubscriptionStore(store)
