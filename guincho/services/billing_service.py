# =========================================================
# FILE: guincho/services/billing_service.py
# =========================================================
"""Stripe checkout and payment verification for provider plans."""

import logging
import os
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import stripe
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from guincho.core import config
from guincho.core.errors import BillingError, BillingNotConfigured, ValidationError
from guincho.models.provider import Provider
from guincho.models.provider_payment import ProviderPayment
from guincho.models.provider_subscription import ProviderSubscription
from guincho.services.admin_service import apply_plan
from guincho.services.plans import PLANS, get_plan
from guincho.services.subscription_service import get_subscription_row

os.makedirs(config.LOG_DIR, exist_ok=True)
stripe_logger = logging.getLogger("stripe_guincho")
if not stripe_logger.handlers:
    handler = logging.FileHandler(os.path.join(config.LOG_DIR, "stripe.log"))
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    handler.setFormatter(formatter)
    stripe_logger.setLevel(logging.INFO)
    stripe_logger.addHandler(handler)

NOT_PAID = {"adesao_paga": False, "plano": None, "subscription_active": False}


def _configure_stripe() -> None:
    if not config.STRIPE_SECRET_KEY:
        raise BillingNotConfigured()
    stripe.api_key = config.STRIPE_SECRET_KEY


def find_customer(whatsapp: Optional[str] = None, provider_id: Optional[str] = None):
    customers = stripe.Customer.list(limit=100)
    for customer in customers.auto_paging_iter():
        metadata = customer.get("metadata") or {}
        if whatsapp and metadata.get("whatsapp") == whatsapp:
            return customer
        if provider_id and metadata.get("provider_id") == provider_id:
            return customer
    return None


def checkout_line_items(plano: str) -> List[Dict[str, Any]]:
    prices = config.STRIPE_PRICES[plano]
    items = [{"price": prices["adesao"], "quantity": 1}]
    # Profissional also pays the custom-domain setup
    if plano == "profissional" and prices.get("dominio"):
        items.append({"price": prices["dominio"], "quantity": 1})
    items.append({"price": prices["mensalidade"], "quantity": 1})
    return items


async def create_checkout_session(
        db: AsyncSession,
        provider_id: Optional[str],
        plano: Optional[str],
        whatsapp: Optional[str],
        origin: Optional[str] = None,
) -> str:
    if not provider_id or not plano or not whatsapp:
        raise ValidationError("provider_id, plano e whatsapp são obrigatórios")
    if plano not in PLANS:
        raise ValidationError("Plano inválido")
    _configure_stripe()

    stripe_logger.info("Checkout requested provider_id=%s plano=%s whatsapp=%s", provider_id, plano, whatsapp)

    try:
        customer = find_customer(whatsapp=whatsapp)
        if customer is None:
            provider = await db.get(Provider, provider_id)
            customer = stripe.Customer.create(
                name=provider.name if provider else f"Provider {whatsapp}",
                metadata={"whatsapp": whatsapp, "provider_id": provider_id},
            )
            stripe_logger.info("Created new Stripe customer customer_id=%s", customer.id)
        else:
            stripe_logger.info("Found existing Stripe customer customer_id=%s", customer.id)

        base = (origin or config.FRONTEND_URL).rstrip("/")
        metadata = {"provider_id": provider_id, "plano": plano, "whatsapp": whatsapp}
        session = stripe.checkout.Session.create(
            customer=customer.id,
            line_items=checkout_line_items(plano),
            mode="subscription",
            success_url=f"{base}/provider-dashboard?success=true&provider_id={provider_id}",
            cancel_url=f"{base}/?canceled=true",
            metadata=metadata,
            subscription_data={"metadata": metadata},
        )
    except stripe.StripeError as exc:
        stripe_logger.error("Stripe session creation failed", exc_info=exc)
        raise BillingError(str(exc))

    stripe_logger.info("Checkout session created session_id=%s url=%s", session.id, session.url)
    return session.url


def _period_end(subscription) -> Optional[datetime]:
    ts = subscription.get("current_period_end")
    if not ts:
        # Newer API versions carry the period on the subscription items.
        items = (subscription.get("items") or {}).get("data") or []
        ts = items[0].get("current_period_end") if items else None
    return datetime.utcfromtimestamp(ts) if ts else None


async def _record_signup_payment(db: AsyncSession, provider_id: str, plano: str, reference: str) -> None:
    existing = (
        await db.execute(
            select(ProviderPayment.id).where(
                ProviderPayment.provider_id == provider_id,
                ProviderPayment.tipo == "adesao",
                ProviderPayment.stripe_payment_intent_id == reference,
            )
        )
    ).scalar_one_or_none()
    if existing:
        return
    db.add(ProviderPayment(
        id=str(uuid.uuid4()),
        provider_id=provider_id,
        tipo="adesao",
        valor=PLANS[plano].adesao,
        status="pago",
        stripe_payment_intent_id=reference,
        created_at=datetime.utcnow(),
    ))
    await db.commit()


def _already_applied(
        row: Optional[ProviderSubscription],
        plano: str,
        subscription_id: Optional[str],
        next_billing: Optional[datetime],
) -> bool:
    """True when ``row`` already carries this paid subscription for the current period."""
    if row is None or not row.adesao_paga or row.plano != plano:
        return False
    if not subscription_id or row.stripe_subscription_id != subscription_id:
        return False
    if next_billing is not None and (row.proxima_cobranca is None or next_billing > row.proxima_cobranca):
        return False
    return True


async def activate_paid_plan(
        db: AsyncSession,
        provider_id: str,
        plano: str,
        customer_id: Optional[str],
        subscription_id: Optional[str],
        next_billing: Optional[datetime] = None,
) -> bool:
    if await db.get(Provider, provider_id) is None:
        stripe_logger.warning("Paid plan for unknown provider_id=%s, skipping upsert", provider_id)
        return False

    row = await get_subscription_row(db, provider_id)
    if _already_applied(row, plano, subscription_id, next_billing):
        # Same subscription and billing period: usage for the cycle stands.
        if customer_id:
            row.stripe_customer_id = customer_id
        await db.commit()
        await _record_signup_payment(db, provider_id, plano, subscription_id)
        stripe_logger.info(
            "Subscription already active provider_id=%s subscription_id=%s, keeping corridas_usadas=%s",
            provider_id, subscription_id, row.corridas_usadas,
        )
        return True

    extra: Dict[str, Any] = {
        "stripe_customer_id": customer_id,
        "stripe_subscription_id": subscription_id,
    }
    if next_billing:
        extra["proxima_cobranca"] = next_billing
    await apply_plan(db, provider_id, get_plan(plano), **extra)
    await _record_signup_payment(db, provider_id, plano, subscription_id or customer_id or "")
    stripe_logger.info("Subscription upserted provider_id=%s plano=%s", provider_id, plano)
    return True


async def verify_payment(
        db: AsyncSession,
        provider_id: Optional[str] = None,
        whatsapp: Optional[str] = None,
) -> Dict[str, Any]:
    if not provider_id and not whatsapp:
        raise ValidationError("provider_id ou whatsapp é obrigatório")
    _configure_stripe()

    try:
        customer = find_customer(whatsapp=whatsapp, provider_id=provider_id)
        if customer is None:
            stripe_logger.info("No customer found provider_id=%s whatsapp=%s", provider_id, whatsapp)
            return dict(NOT_PAID)

        subscriptions = stripe.Subscription.list(customer=customer.id, status="active", limit=1)
    except stripe.StripeError as exc:
        stripe_logger.error("Stripe lookup failed", exc_info=exc)
        raise BillingError(str(exc))

    if not subscriptions.data:
        stripe_logger.info("No active subscription customer_id=%s", customer.id)
        return dict(NOT_PAID)

    subscription = subscriptions.data[0]
    plano = (subscription.get("metadata") or {}).get("plano")
    if plano not in PLANS:
        plano = "basico"
    plan = PLANS[plano]
    next_billing = _period_end(subscription)

    stripe_logger.info(
        "Active subscription found subscription_id=%s plano=%s period_end=%s",
        subscription.id, plano, next_billing,
    )

    actual_provider_id = provider_id or (customer.get("metadata") or {}).get("provider_id")
    if actual_provider_id:
        await activate_paid_plan(db, actual_provider_id, plano, customer.id, subscription.id, next_billing)

    return {
        "adesao_paga": True,
        "plano": plano,
        "subscription_active": True,
        "limite_corridas": plan.limite_corridas,
        "mensalidade_valor": plan.mensalidade,
        "proxima_cobranca": next_billing.isoformat() if next_billing else None,
        "stripe_customer_id": customer.id,
    }


async def handle_webhook(db: AsyncSession, payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
    if not config.STRIPE_WEBHOOK_SECRET:
        raise ValidationError("Stripe webhook not configured")

    try:
        event = stripe.Webhook.construct_event(
            payload=payload, sig_header=sig_header, secret=config.STRIPE_WEBHOOK_SECRET
        )
    except (ValueError, stripe.SignatureVerificationError) as exc:
        raise ValidationError(f"Invalid webhook: {exc}")

    if event["type"] != "checkout.session.completed":
        return {"received": True}

    session = event["data"]["object"]
    metadata = session.get("metadata") or {}
    provider_id = metadata.get("provider_id")
    plano = metadata.get("plano")
    if not provider_id or plano not in PLANS:
        stripe_logger.warning("Checkout completed without usable metadata session_id=%s", session.get("id"))
        return {"received": True}

    await activate_paid_plan(db, provider_id, plano, session.get("customer"), session.get("subscription"))
    stripe_logger.info("Webhook activated plan provider_id=%s plano=%s", provider_id, plano)
    return {"received": True}
