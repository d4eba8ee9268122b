"""Delivery history reconciliation.

Ingests delivery results reported by the relay, skipping results that
are already recorded, and deactivates subscriptions whose endpoint
answered with a client error.
"""

import structlog

from webhook_subscriptions.subscriptions.models import (
    SubscriptionDeliveryResult,
    is_client_error,
)
from webhook_subscriptions.subscriptions.store import SubscriptionStore, safe_store

logger = structlog.get_logger(__name__)


class DeliveryHistoryReconciler:
    """Records delivery results and applies the auto-deactivation policy.

    Policy: any single 4xx result deactivates an active subscription.
    5xx results and successes never change the active flag; retrying
    those belongs to the relay.
    """

    def __init__(self, store: SubscriptionStore) -> None:
        """Initialize the reconciler.

        Args:
            store: Subscription store (wrapped in the safe adapter).
        """
        self._store = safe_store(store)
        self._logger = logger.bind(component="delivery_history")

    async def ingest(self, results: list[SubscriptionDeliveryResult]) -> int:
        """Ingest a batch of delivery results.

        Each result is processed on its own; a failure part-way leaves
        earlier results recorded.

        Args:
            results: Results reported by the relay.

        Returns:
            Number of results newly recorded.
        """
        recorded = 0
        for incoming in results:
            if await self._exists_in_store(incoming, page_size=len(results)):
                self._logger.debug(
                    "delivery_result_skipped",
                    result_id=incoming.id,
                    subscription_id=incoming.subscription_id,
                )
                continue

            if not await self._store.add_history(incoming.subscription_id, incoming):
                self._logger.debug(
                    "delivery_result_skipped",
                    result_id=incoming.id,
                    subscription_id=incoming.subscription_id,
                )
                continue
            recorded += 1

            self._logger.info(
                "delivery_result_added",
                result_id=incoming.id,
                subscription_id=incoming.subscription_id,
                status_code=incoming.status_code,
            )

            if is_client_error(incoming.status_code):
                await self._deactivate(incoming.subscription_id)

        return recorded

    async def _exists_in_store(
        self, incoming: SubscriptionDeliveryResult, *, page_size: int
    ) -> bool:
        # Only the most recent page_size entries are compared; an older
        # duplicate outside that window is caught only by a store whose
        # add_history reports it.
        existing = await self._store.search_history(incoming.subscription_id, page_size)
        incoming_id = incoming.id.casefold()
        return any(result.id.casefold() == incoming_id for result in existing)

    async def _deactivate(self, subscription_id: str) -> None:
        subscription = await self._store.get(subscription_id)
        if subscription is None or not subscription.is_active:
            return

        subscription.is_active = False
        await self._store.update(subscription_id, subscription)

        self._logger.info("subscription_deactivated", subscription_id=subscription_id)
