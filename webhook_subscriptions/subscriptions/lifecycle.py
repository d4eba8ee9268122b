"""Subscription lifecycle management.

Creates, reads, updates and deletes subscriptions on behalf of an
explicit caller, and prevents an owner from registering twice for the
same event.
"""

from collections.abc import Callable
from datetime import datetime

import structlog

from webhook_subscriptions.errors import (
    SubscriptionConflictError,
    SubscriptionNotFoundError,
)
from webhook_subscriptions.subscriptions.models import (
    Caller,
    SubscriptionConfig,
    SubscriptionDeliveryResult,
    WebhookSubscription,
    utc_now_to_second,
)
from webhook_subscriptions.subscriptions.store import SubscriptionStore, safe_store

logger = structlog.get_logger(__name__)

# History entries returned alongside a single subscription
DEFAULT_HISTORY_LIMIT = 100


def _should_overwrite(incoming: str | None, current: str | None) -> bool:
    """Check if an incoming text value should replace the current one.

    Empty values never overwrite, and values equal ignoring case count
    as unchanged.
    """
    if not incoming:
        return False
    return incoming.casefold() != (current or "").casefold()


class SubscriptionManager:
    """Manages the lifecycle of webhook subscriptions.

    Every operation takes the caller explicitly; nothing is looked up
    from ambient request state.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        *,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        clock: Callable[[], datetime] = utc_now_to_second,
    ) -> None:
        """Initialize the subscription manager.

        Args:
            store: Subscription store (wrapped in the safe adapter).
            history_limit: History entries returned by ``get``.
            clock: Source of the current UTC time, whole seconds.
        """
        self._store = safe_store(store)
        self._history_limit = history_limit
        self._clock = clock
        self._logger = logger.bind(component="subscription_manager")

    async def create(
        self,
        caller: Caller,
        name: str,
        config: SubscriptionConfig,
        events: list[str],
    ) -> list[WebhookSubscription]:
        """Create one subscription per event for the caller.

        Candidates are committed one at a time. When an event is already
        subscribed by the caller, creation stops there; subscriptions
        committed before the conflict are kept and their ids travel on
        the raised error.

        Args:
            caller: Owner of the new subscriptions.
            name: Subscription name.
            config: Delivery configuration shared by all events.
            events: Event names to subscribe to.

        Returns:
            Created subscriptions, each carrying its assigned id.

        Raises:
            SubscriptionConflictError: If the caller already subscribes to an event.
        """
        now = self._clock()
        candidates = [
            WebhookSubscription(
                name=name,
                event=event,
                created_by_id=caller.user_id,
                is_active=True,
                created_date_utc=now,
                last_modified_date_utc=now,
                config=config.model_copy(),
            )
            for event in events
        ]

        created: list[WebhookSubscription] = []
        for subscription in candidates:
            created_ids = [s.id for s in created if s.id]

            existing = await self._store.get_by_event(subscription.created_by_id, subscription.event)
            if existing is not None:
                raise SubscriptionConflictError(subscription.event, created_ids=created_ids)

            try:
                subscription.id = await self._store.add(subscription)
            except SubscriptionConflictError as e:
                # Lost a race with a concurrent create for the same pair
                raise SubscriptionConflictError(subscription.event, created_ids=created_ids) from e
            created.append(subscription)

            self._logger.info(
                "subscription_created",
                subscription_id=subscription.id,
                event_name=subscription.event,
                user_id=caller.user_id,
            )

        return created

    async def get(
        self,
        caller: Caller,
        subscription_id: str,
    ) -> tuple[WebhookSubscription, list[SubscriptionDeliveryResult]]:
        """Get a subscription with its most recent delivery history.

        Args:
            caller: Caller performing the lookup.
            subscription_id: Subscription identifier.

        Returns:
            The subscription and its history, most recent first.

        Raises:
            SubscriptionNotFoundError: If the subscription does not exist.
        """
        subscription = await self._get_or_raise(subscription_id)

        history = await self._store.search_history(subscription_id, self._history_limit)
        history.sort(key=lambda r: r.attempted_date_utc, reverse=True)

        self._logger.info(
            "subscription_retrieved",
            subscription_id=subscription.id,
            user_id=caller.user_id,
        )

        return subscription, history

    async def list_owned(self, caller: Caller) -> list[WebhookSubscription]:
        """List the caller's subscriptions.

        Args:
            caller: Owner whose subscriptions to list.

        Returns:
            Owned subscriptions, possibly empty.
        """
        subscriptions = await self._store.find(caller.user_id)

        self._logger.info("subscriptions_listed", user_id=caller.user_id, count=len(subscriptions))

        return subscriptions

    async def update(
        self,
        caller: Caller,
        subscription_id: str,
        *,
        url: str | None = None,
        secret: str | None = None,
        content_type: str | None = None,
        is_active: bool | None = None,
    ) -> WebhookSubscription:
        """Apply a partial update to a subscription.

        Text fields change only when the new value is non-empty and
        differs ignoring case; ``is_active`` changes only when supplied.
        The last-modified time is refreshed on every call.

        Args:
            caller: Caller performing the update.
            subscription_id: Subscription identifier.
            url: New target URL.
            secret: New signing secret.
            content_type: New content type.
            is_active: New active flag.

        Returns:
            The updated subscription.

        Raises:
            SubscriptionNotFoundError: If the subscription does not exist.
        """
        now = self._clock()
        subscription = await self._get_or_raise(subscription_id)

        if _should_overwrite(url, subscription.config.url):
            subscription.config.url = url  # type: ignore[assignment]
        if _should_overwrite(secret, subscription.config.secret):
            subscription.config.secret = secret
        if _should_overwrite(content_type, subscription.config.content_type):
            subscription.config.content_type = content_type  # type: ignore[assignment]
        if is_active is not None and is_active != subscription.is_active:
            subscription.is_active = is_active
        subscription.last_modified_date_utc = now

        await self._store.update(subscription_id, subscription)

        self._logger.info(
            "subscription_updated",
            subscription_id=subscription.id,
            user_id=caller.user_id,
            is_active=subscription.is_active,
        )

        return subscription

    async def delete(self, caller: Caller, subscription_id: str) -> None:
        """Delete a subscription. Its delivery history is kept.

        Args:
            caller: Caller performing the deletion.
            subscription_id: Subscription identifier.

        Raises:
            SubscriptionNotFoundError: If the subscription does not exist.
        """
        subscription = await self._get_or_raise(subscription_id)

        await self._store.delete(subscription_id)

        self._logger.info(
            "subscription_deleted",
            subscription_id=subscription.id,
            user_id=caller.user_id,
        )

    async def _get_or_raise(self, subscription_id: str) -> WebhookSubscription:
        subscription = await self._store.get(subscription_id)
        if subscription is None:
            raise SubscriptionNotFoundError(subscription_id)
        return subscription
