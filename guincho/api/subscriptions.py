# =========================================================
# FILE: guincho/api/subscriptions.py
# =========================================================

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from guincho.api.deps import get_db
from guincho.schemas.subscription import (
    RideIncrementRequest,
    RideIncrementResponse,
    SubscriptionLookup,
    SubscriptionResponse,
)
from guincho.services import metering_service, subscription_service

router = APIRouter(prefix="/api", tags=["subscriptions"])


@router.post("/provider-subscription", response_model=SubscriptionResponse)
async def get_provider_subscription(body: SubscriptionLookup, db: AsyncSession = Depends(get_db)):
    """Current metering state of a provider, looked up by id or WhatsApp."""
    return await subscription_service.read_subscription(db, provider_id=body.provider_id, whatsapp=body.whatsapp)


@router.post("/provider-rides/increment", response_model=RideIncrementResponse, response_model_exclude_none=True)
async def increment_provider_rides(body: RideIncrementRequest, db: AsyncSession = Depends(get_db)):
    """Record one ride. Blocked rides come back as 200 with a reason code."""
    return await metering_service.increment_ride(db, body.provider_id)
