"""Read-side subscription queries."""

from webhook_subscriptions.subscriptions.models import (
    SubscriptionDeliveryResult,
    SubscriptionRelayConfig,
)
from webhook_subscriptions.subscriptions.store import SubscriptionStore, safe_store


class SubscriptionSearch:
    """Owner-agnostic queries used by the relay and for history listing."""

    def __init__(self, store: SubscriptionStore) -> None:
        self._store = safe_store(store)

    async def search(self, event: str, *, active_only: bool = True) -> list[SubscriptionRelayConfig]:
        """Find subscribers to an event across all owners.

        Args:
            event: Event name.
            active_only: Only include active subscriptions.

        Returns:
            Relay configs of matching subscriptions, possibly empty.
        """
        subscriptions = await self._store.search(event, active_only)
        return [SubscriptionRelayConfig.from_subscription(s) for s in subscriptions]

    async def search_history(
        self, subscription_id: str, limit: int
    ) -> list[SubscriptionDeliveryResult]:
        """Get the most recent delivery results of a subscription.

        Args:
            subscription_id: Subscription identifier.
            limit: Maximum results.

        Returns:
            Results, most recent first, possibly empty.
        """
        history = await self._store.search_history(subscription_id, limit)
        history.sort(key=lambda r: r.attempted_date_utc, reverse=True)
        return history[:limit]
