"""Webhook subscription and delivery history models.

Defines the subscription aggregate, its delivery configuration, the
delivery results reported back by the relay, and the explicit caller
identity threaded through every operation.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator

DEFAULT_CONTENT_TYPE = "application/json"


def utc_now_to_second() -> datetime:
    """Get the current UTC time truncated to whole seconds.

    Returns:
        Timezone-aware UTC datetime with no microseconds.
    """
    return datetime.now(UTC).replace(microsecond=0)


def is_client_error(status_code: int) -> bool:
    """Check whether a status code is in the 4xx range."""
    return 400 <= status_code < 500


class Caller(BaseModel):
    """The already-resolved identity performing an operation."""

    user_id: str = Field(..., description="Opaque identifier of the calling user")


class SubscriptionConfig(BaseModel):
    """Delivery configuration of a subscription."""

    url: str = Field(..., description="Target URL deliveries are posted to")
    secret: str | None = Field(
        default=None,
        description="Secret used by the relay to sign deliveries",
    )
    content_type: str = Field(
        default=DEFAULT_CONTENT_TYPE,
        description="Content type of delivered payloads",
    )


class WebhookSubscription(BaseModel):
    """A registration of an owner's delivery config against one event."""

    id: str | None = Field(
        default=None,
        description="Identifier assigned by the store on creation",
    )
    name: str = Field(..., description="Human-readable subscription name")
    event: str = Field(..., description="Name of the subscribed event")
    created_by_id: str = Field(..., description="User id of the owner")
    is_active: bool = Field(
        default=True,
        description="Whether the relay should deliver to this subscription",
    )
    created_date_utc: datetime = Field(
        default_factory=utc_now_to_second,
        description="When the subscription was created",
    )
    last_modified_date_utc: datetime = Field(
        default_factory=utc_now_to_second,
        description="When the subscription was last modified",
    )
    config: SubscriptionConfig = Field(..., description="Delivery configuration")


class SubscriptionDeliveryResult(BaseModel):
    """Outcome of one delivery attempt, as reported by the relay."""

    id: str = Field(..., min_length=1, description="Relay-assigned result identifier")
    subscription_id: str = Field(
        ..., min_length=1, description="Subscription the attempt was made for"
    )
    status_code: int = Field(
        ..., ge=100, le=599, description="HTTP status code returned by the subscriber"
    )
    status_description: str | None = Field(
        default=None,
        description="Reason phrase or error text for the attempt",
    )
    attempted_date_utc: datetime = Field(..., description="When delivery was attempted")

    @field_validator("attempted_date_utc")
    @classmethod
    def _normalize_to_utc(cls, value: datetime) -> datetime:
        # Naive timestamps from the relay are already UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class SubscriptionRelayConfig(BaseModel):
    """What the relay needs to deliver an event to one subscriber."""

    subscription_id: str
    event: str
    config: SubscriptionConfig

    @classmethod
    def from_subscription(cls, subscription: WebhookSubscription) -> "SubscriptionRelayConfig":
        """Create relay config from a stored subscription."""
        return cls(
            subscription_id=subscription.id or "",
            event=subscription.event,
            config=subscription.config,
        )
