# =========================================================
# FILE: guincho/api/billing.py
# =========================================================

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from guincho.api.deps import get_db, request_origin
from guincho.core.errors import ValidationError
from guincho.schemas.billing import (
    CheckoutRequest,
    CheckoutResponse,
    PaymentVerifyRequest,
    PaymentVerifyResponse,
)
from guincho.services import billing_service

router = APIRouter(prefix="/api/billing", tags=["billing"])


@router.post("/checkout", response_model=CheckoutResponse)
async def create_provider_checkout(body: CheckoutRequest, request: Request, db: AsyncSession = Depends(get_db)):
    url = await billing_service.create_checkout_session(
        db, body.provider_id, body.plano, body.whatsapp, origin=request_origin(request)
    )
    return CheckoutResponse(url=url)


@router.post("/verify", response_model=PaymentVerifyResponse, response_model_exclude_none=True)
async def verify_provider_payment(body: PaymentVerifyRequest, db: AsyncSession = Depends(get_db)):
    return await billing_service.verify_payment(db, provider_id=body.provider_id, whatsapp=body.whatsapp)


@router.post("/webhook")
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """Stripe webhook to activate plans after checkout."""
    payload = await request.body()
    try:
        return await billing_service.handle_webhook(db, payload, request.headers.get("stripe-signature"))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
