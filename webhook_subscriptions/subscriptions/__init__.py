"""Webhook subscription management.

This module provides:
- WebhookSubscription / SubscriptionConfig: subscription models
- SubscriptionDeliveryResult: delivery outcomes reported by the relay
- SubscriptionStore: persistence contract (in-memory and SQLite)
- SubscriptionManager: subscription lifecycle
- DeliveryHistoryReconciler: history ingestion and auto-deactivation
- SubscriptionService: request-level facade and relay peer interface
"""

from webhook_subscriptions.subscriptions.history import DeliveryHistoryReconciler
from webhook_subscriptions.subscriptions.lifecycle import SubscriptionManager
from webhook_subscriptions.subscriptions.models import (
    Caller,
    SubscriptionConfig,
    SubscriptionDeliveryResult,
    SubscriptionRelayConfig,
    WebhookSubscription,
)
from webhook_subscriptions.subscriptions.search import SubscriptionSearch
from webhook_subscriptions.subscriptions.service import (
    SubscriptionRelayService,
    SubscriptionService,
    get_subscription_service,
    set_subscription_service,
)
from webhook_subscriptions.subscriptions.sqlite_store import SqliteSubscriptionStore
from webhook_subscriptions.subscriptions.store import (
    InMemorySubscriptionStore,
    SafeSubscriptionStore,
    SubscriptionStore,
)

__all__ = [
    # Models
    "Caller",
    "SubscriptionConfig",
    "SubscriptionDeliveryResult",
    "SubscriptionRelayConfig",
    "WebhookSubscription",
    # Stores
    "SubscriptionStore",
    "InMemorySubscriptionStore",
    "SafeSubscriptionStore",
    "SqliteSubscriptionStore",
    # Core
    "SubscriptionManager",
    "DeliveryHistoryReconciler",
    "SubscriptionSearch",
    # Service
    "SubscriptionRelayService",
    "SubscriptionService",
    "get_subscription_service",
    "set_subscription_service",
]
