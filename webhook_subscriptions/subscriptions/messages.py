"""Request and response models for subscription operations.

Requests are validated here, before they reach the subscription
manager; responses wrap the domain models returned to the transport.
"""

import base64
import binascii
import re
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

from webhook_subscriptions.subscriptions.models import (
    DEFAULT_CONTENT_TYPE,
    SubscriptionConfig,
    SubscriptionDeliveryResult,
    SubscriptionRelayConfig,
    WebhookSubscription,
)

# Letters, digits, '.', '_' and '-', between 4 and 100 characters
EVENT_NAME_PATTERN = re.compile(r"^[\w.\-]{4,100}$")

SUPPORTED_CONTENT_TYPES = (DEFAULT_CONTENT_TYPE,)


def _validate_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("url must be an absolute http or https URL")
    return value


def _validate_secret(value: str) -> str:
    try:
        base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("secret must be a base64 encoded string") from e
    return value


def _validate_content_type(value: str) -> str:
    if value.lower() not in SUPPORTED_CONTENT_TYPES:
        raise ValueError(f"content_type must be one of: {', '.join(SUPPORTED_CONTENT_TYPES)}")
    return value


# ============================================================================
# Request Models
# ============================================================================


class SubscriptionConfigRequest(BaseModel):
    """Delivery configuration supplied when subscribing."""

    url: str = Field(..., description="Absolute http(s) URL to deliver to")
    secret: str | None = Field(
        default=None, description="Base64 secret for signing deliveries"
    )
    content_type: str | None = Field(
        default=None, description="Payload content type (application/json)"
    )

    @field_validator("url")
    @classmethod
    def check_url(cls, value: str) -> str:
        return _validate_url(value)

    @field_validator("secret")
    @classmethod
    def check_secret(cls, value: str | None) -> str | None:
        return _validate_secret(value) if value else value

    @field_validator("content_type")
    @classmethod
    def check_content_type(cls, value: str | None) -> str | None:
        return _validate_content_type(value) if value else value

    def to_config(self) -> SubscriptionConfig:
        """Convert to the stored configuration."""
        return SubscriptionConfig(
            url=self.url,
            secret=self.secret or None,
            content_type=self.content_type or DEFAULT_CONTENT_TYPE,
        )


class CreateSubscriptionRequest(BaseModel):
    """Request to subscribe to one or more events."""

    name: str = Field(..., min_length=1, max_length=100, description="Subscription name")
    events: list[str] = Field(..., min_length=1, description="Event names to subscribe to")
    config: SubscriptionConfigRequest = Field(..., description="Delivery configuration")

    @field_validator("events")
    @classmethod
    def check_events(cls, value: list[str]) -> list[str]:
        for event in value:
            if not EVENT_NAME_PATTERN.match(event):
                raise ValueError(
                    f"invalid event name '{event}': use 4-100 letters, digits, '.', '_' or '-'"
                )
        if len(set(value)) != len(value):
            raise ValueError("events must not contain duplicates")
        return value


class UpdateSubscriptionRequest(BaseModel):
    """Partial update of a subscription; omitted fields are left alone."""

    url: str | None = Field(default=None, description="New target URL")
    secret: str | None = Field(default=None, description="New base64 secret")
    content_type: str | None = Field(default=None, description="New content type")
    is_active: bool | None = Field(default=None, description="Activate or deactivate")

    @field_validator("url")
    @classmethod
    def check_url(cls, value: str | None) -> str | None:
        return _validate_url(value) if value else value

    @field_validator("secret")
    @classmethod
    def check_secret(cls, value: str | None) -> str | None:
        return _validate_secret(value) if value else value

    @field_validator("content_type")
    @classmethod
    def check_content_type(cls, value: str | None) -> str | None:
        return _validate_content_type(value) if value else value


class UpdateSubscriptionHistoryRequest(BaseModel):
    """Batch of delivery results reported by the relay."""

    results: list[SubscriptionDeliveryResult] = Field(
        default_factory=list, description="Delivery results to record"
    )


class SearchSubscriptionsRequest(BaseModel):
    """Search for the subscribers of an event."""

    event_name: str = Field(..., min_length=1, description="Event name")


# ============================================================================
# Response Models
# ============================================================================


class SearchSubscriptionsResponse(BaseModel):
    """Active subscribers of an event."""

    subscribers: list[SubscriptionRelayConfig] = Field(default_factory=list)


class CreateSubscriptionResponse(BaseModel):
    """Subscriptions created by a create request."""

    subscriptions: list[WebhookSubscription] = Field(default_factory=list)


class GetSubscriptionResponse(BaseModel):
    """A subscription with its recent delivery history, newest first."""

    subscription: WebhookSubscription
    history: list[SubscriptionDeliveryResult] = Field(default_factory=list)


class ListSubscriptionsResponse(BaseModel):
    """Subscriptions owned by the caller."""

    subscriptions: list[WebhookSubscription] = Field(default_factory=list)


class UpdateSubscriptionResponse(BaseModel):
    """The subscription after an update."""

    subscription: WebhookSubscription


class DeleteSubscriptionResponse(BaseModel):
    """Acknowledgement of a deletion."""


class UpdateSubscriptionHistoryResponse(BaseModel):
    """Acknowledgement of a history update."""


class SearchSubscriptionHistoryResponse(BaseModel):
    """Most recent delivery results of a subscription."""

    results: list[SubscriptionDeliveryResult] = Field(default_factory=list)
