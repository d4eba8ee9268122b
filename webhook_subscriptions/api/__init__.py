"""HTTP API for webhook subscriptions."""

from webhook_subscriptions.api.app import create_app

__all__ = ["create_app"]
