"""Error types for the webhook subscription service.

Exception Hierarchy:
    WebhookSubscriptionError (base)
    ├── SubscriptionNotFoundError - Referenced subscription does not exist
    └── SubscriptionConflictError - Duplicate (owner, event) registration

Errors are raised where they are detected and never retried here; the
HTTP layer maps them to status codes. Store failures are not wrapped and
propagate unchanged.
"""

from typing import Any


class WebhookSubscriptionError(Exception):
    """Base exception for all webhook subscription errors.

    Attributes:
        message: Human-readable error message.
        details: Additional error details.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class SubscriptionNotFoundError(WebhookSubscriptionError):
    """No subscription exists with the given id.

    Attributes:
        subscription_id: The id that was looked up.
    """

    status_code = 404

    def __init__(self, subscription_id: str) -> None:
        super().__init__(
            f"Subscription {subscription_id} not found",
            details={"subscription_id": subscription_id},
        )
        self.subscription_id = subscription_id


class SubscriptionConflictError(WebhookSubscriptionError):
    """A subscription for the same owner and event already exists.

    Creation is not transactional, so subscriptions created earlier in
    the same batch are kept and reported in ``created_ids``.

    Attributes:
        event: The event name that conflicted.
        created_ids: Ids of subscriptions committed before the conflict.
    """

    status_code = 409

    def __init__(self, event: str, *, created_ids: list[str] | None = None) -> None:
        created = created_ids or []
        super().__init__(
            f"A subscription for event '{event}' already exists",
            details={"event": event, "created_ids": created},
        )
        self.event = event
        self.created_ids = created
