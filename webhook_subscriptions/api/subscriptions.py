"""Subscription management API endpoints.

Thin mapping from HTTP requests onto the subscription service. The
caller identity is resolved upstream and arrives in the X-Caller-Id
header.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from webhook_subscriptions.subscriptions.messages import (
    CreateSubscriptionRequest,
    CreateSubscriptionResponse,
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
from webhook_subscriptions.subscriptions.models import Caller
from webhook_subscriptions.subscriptions.service import (
    SubscriptionService,
    get_subscription_service,
)

CALLER_HEADER = "X-Caller-Id"

router = APIRouter(prefix="/webhooks", tags=["Subscriptions"])


def get_caller(
    x_caller_id: Annotated[str | None, Header(alias=CALLER_HEADER)] = None,
) -> Caller:
    """Build the caller from the resolved identity header."""
    if not x_caller_id:
        raise HTTPException(status_code=401, detail=f"Missing {CALLER_HEADER} header")
    return Caller(user_id=x_caller_id)


CallerDep = Annotated[Caller, Depends(get_caller)]
ServiceDep = Annotated[SubscriptionService, Depends(get_subscription_service)]


@router.get(
    "/subscriptions/search",
    response_model=SearchSubscriptionsResponse,
)
async def search_subscriptions(
    caller: CallerDep,
    service: ServiceDep,
    event: Annotated[str, Query(min_length=1)],
) -> SearchSubscriptionsResponse:
    """Find active subscribers of an event across all owners."""
    return await service.search_subscriptions(
        caller, SearchSubscriptionsRequest(event_name=event)
    )


@router.post(
    "/subscriptions",
    response_model=CreateSubscriptionResponse,
    responses={
        201: {"description": "Subscriptions created"},
        409: {"description": "Already subscribed to an event"},
    },
    status_code=201,
)
async def create_subscription(
    request: CreateSubscriptionRequest,
    caller: CallerDep,
    service: ServiceDep,
) -> CreateSubscriptionResponse:
    """Subscribe the caller to one or more events."""
    return await service.create_subscription(caller, request)


@router.get(
    "/subscriptions",
    response_model=ListSubscriptionsResponse,
)
async def list_subscriptions(
    caller: CallerDep,
    service: ServiceDep,
) -> ListSubscriptionsResponse:
    """List the caller's subscriptions."""
    return await service.list_subscriptions(caller)


@router.put(
    "/subscriptions/history",
    response_model=UpdateSubscriptionHistoryResponse,
)
async def update_subscription_history(
    request: UpdateSubscriptionHistoryRequest,
    caller: CallerDep,
    service: ServiceDep,
) -> UpdateSubscriptionHistoryResponse:
    """Record delivery results reported by the relay."""
    return await service.update_subscription_history(caller, request)


@router.get(
    "/subscriptions/{subscription_id}",
    response_model=GetSubscriptionResponse,
    responses={
        404: {"description": "Subscription not found"},
    },
)
async def get_subscription(
    subscription_id: str,
    caller: CallerDep,
    service: ServiceDep,
) -> GetSubscriptionResponse:
    """Get a subscription with its recent delivery history."""
    return await service.get_subscription(caller, subscription_id)


@router.get(
    "/subscriptions/{subscription_id}/history",
    response_model=SearchSubscriptionHistoryResponse,
)
async def search_subscription_history(
    subscription_id: str,
    caller: CallerDep,
    service: ServiceDep,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> SearchSubscriptionHistoryResponse:
    """List the most recent delivery results of a subscription."""
    return await service.search_subscription_history(caller, subscription_id, limit)


@router.put(
    "/subscriptions/{subscription_id}",
    response_model=UpdateSubscriptionResponse,
    responses={
        404: {"description": "Subscription not found"},
    },
)
async def update_subscription(
    subscription_id: str,
    request: UpdateSubscriptionRequest,
    caller: CallerDep,
    service: ServiceDep,
) -> UpdateSubscriptionResponse:
    """Update a subscription's config or active flag."""
    return await service.update_subscription(caller, subscription_id, request)


@router.delete(
    "/subscriptions/{subscription_id}",
    responses={
        204: {"description": "Subscription deleted"},
        404: {"description": "Subscription not found"},
    },
    status_code=204,
)
async def delete_subscription(
    subscription_id: str,
    caller: CallerDep,
    service: ServiceDep,
) -> None:
    """Delete a subscription."""
    await service.delete_subscription(caller, subscription_id)
