# =========================================================
# FILE: guincho/services/subscription_service.py
# =========================================================
"""
Read side of provider metering.

A provider without a ``provider_subscriptions`` row is treated as being in
trial mode with the default allotment. That default comes from
``default_subscription()`` only, so every caller sees the same values.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from guincho.core.config import TRIAL_DEFAULT_RIDES
from guincho.core.errors import ProviderNotFound, ValidationError
from guincho.models.provider import Provider
from guincho.models.provider_customization import ProviderCustomization
from guincho.models.provider_subscription import ProviderSubscription
from guincho.schemas.providers import CustomizationOut, ProviderOut
from guincho.services import provider_service

logger = logging.getLogger("guincho.subscription")

SUBSCRIPTION_FIELDS = (
    "plano",
    "adesao_paga",
    "trial_ativo",
    "trial_corridas_restantes",
    "corridas_usadas",
    "limite_corridas",
    "mensalidade_atual",
    "proxima_cobranca",
    "stripe_customer_id",
    "stripe_subscription_id",
)


def default_subscription() -> Dict[str, Any]:
    return {
        "plano": None,
        "adesao_paga": False,
        "trial_ativo": True,
        "trial_corridas_restantes": TRIAL_DEFAULT_RIDES,
        "corridas_usadas": 0,
        "limite_corridas": 0,
        "mensalidade_atual": 0,
        "proxima_cobranca": None,
        "stripe_customer_id": None,
        "stripe_subscription_id": None,
    }


def needs_plan_selection(sub: Mapping[str, Any]) -> bool:
    if sub.get("adesao_paga"):
        return False
    return int(sub.get("trial_corridas_restantes") or 0) <= 0 or not sub.get("trial_ativo")


def subscription_to_dict(row: ProviderSubscription) -> Dict[str, Any]:
    data: Dict[str, Any] = {"id": row.id, "provider_id": row.provider_id}
    for field in SUBSCRIPTION_FIELDS:
        data[field] = getattr(row, field)
    if data["proxima_cobranca"] is not None:
        data["proxima_cobranca"] = data["proxima_cobranca"].isoformat()
    data["adesao_paga_em"] = row.adesao_paga_em.isoformat() if row.adesao_paga_em else None
    return data


async def get_subscription_row(db: AsyncSession, provider_id: str) -> Optional[ProviderSubscription]:
    return (
        await db.execute(
            select(ProviderSubscription)
            .where(ProviderSubscription.provider_id == provider_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()


async def get_or_create_subscription(
        db: AsyncSession,
        provider_id: str,
        **initial: Any,
) -> ProviderSubscription:
    """Return the provider's row, inserting one built from the defaults if absent.

    ``initial`` overrides default columns on insert only. A concurrent insert
    for the same provider loses on the unique key and re-reads the winner.
    """
    row = await get_subscription_row(db, provider_id)
    if row is not None:
        return row

    values = default_subscription()
    values.update(initial)
    row = ProviderSubscription(
        id=str(uuid.uuid4()),
        provider_id=provider_id,
        created_at=datetime.utcnow(),
        **values,
    )
    db.add(row)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        row = await get_subscription_row(db, provider_id)
        if row is None:
            raise ProviderNotFound()
        return row

    logger.info("Created subscription row provider_id=%s trial_ativo=%s", provider_id, row.trial_ativo)
    return row


async def read_subscription(
        db: AsyncSession,
        provider_id: Optional[str] = None,
        whatsapp: Optional[str] = None,
) -> Dict[str, Any]:
    if not provider_id and not whatsapp:
        raise ValidationError("provider_id ou whatsapp é obrigatório")

    if provider_id:
        provider = await db.get(Provider, provider_id)
    else:
        provider = await provider_service.find_provider_by_whatsapp(db, whatsapp)
        if provider is None:
            logger.info("No provider matches whatsapp=%s", whatsapp)
            return {"found": False, "message": ProviderNotFound().message}
        provider_id = provider.id

    row = await get_subscription_row(db, provider_id)
    customization = (
        await db.execute(
            select(ProviderCustomization).where(ProviderCustomization.provider_id == provider_id)
        )
    ).scalar_one_or_none()

    if row is None:
        logger.info("No subscription for provider_id=%s, returning trial defaults", provider_id)
        subscription = default_subscription()
    else:
        subscription = subscription_to_dict(row)

    needs_plan = needs_plan_selection(subscription)
    logger.info(
        "Subscription read provider_id=%s plano=%s adesao_paga=%s needs_plan_selection=%s",
        provider_id, subscription["plano"], subscription["adesao_paga"], needs_plan,
    )

    return {
        "found": True,
        "provider": ProviderOut.model_validate(provider).model_dump(mode="json") if provider else None,
        "subscription": subscription,
        "customization": (
            CustomizationOut.model_validate(customization).model_dump(mode="json") if customization else None
        ),
        "needs_plan_selection": needs_plan,
    }
