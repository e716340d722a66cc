"""
Subscription endpoints.

Thin relays to the billing functions. What a tier unlocks is decided by
the billing service, not here.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ..dependencies import CoachId, SubscriptionDep

logger = logging.getLogger(__name__)

router = APIRouter()


class SubscriptionStatusResponse(BaseModel):
    subscribed: bool
    subscription_tier: Optional[str] = None
    subscription_end: Optional[datetime] = None


class CheckoutRequest(BaseModel):
    tier: str = Field(min_length=1, description="Billing tier to subscribe to")


class RedirectResponse(BaseModel):
    url: str


@router.get("/status", response_model=SubscriptionStatusResponse, summary="Subscription status")
async def subscription_status(coach_id: CoachId, gateway: SubscriptionDep) -> SubscriptionStatusResponse:
    result = await gateway.check(coach_id)
    return SubscriptionStatusResponse(
        subscribed=result.subscribed,
        subscription_tier=result.subscription_tier,
        subscription_end=result.subscription_end,
    )


@router.post("/checkout", response_model=RedirectResponse, summary="Start a checkout")
async def create_checkout(
    request: CheckoutRequest,
    coach_id: CoachId,
    gateway: SubscriptionDep,
) -> RedirectResponse:
    url = await gateway.create_checkout(coach_id, request.tier)
    logger.info("Checkout created", extra={"coach_id": coach_id, "tier": request.tier})
    return RedirectResponse(url=url)


@router.post("/portal", response_model=RedirectResponse, summary="Open the customer portal")
async def customer_portal(coach_id: CoachId, gateway: SubscriptionDep) -> RedirectResponse:
    return RedirectResponse(url=await gateway.customer_portal(coach_id))
