# =========================================================
# FILE: guincho/services/admin_service.py
# =========================================================
"""
Privileged overrides of provider state, used by the admin panel.

These bypass the metering state machine on purpose and are kept apart from
it. Every write is keyed by provider_id and converges to the same row when
retried.
"""

import hmac
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from guincho.core.config import ADMIN_PASSWORD, BILLING_CYCLE_DAYS, TRIAL_DEFAULT_RIDES
from guincho.core.errors import ValidationError
from guincho.models.provider import Provider
from guincho.models.provider_subscription import ProviderSubscription
from guincho.schemas.providers import BrandingUpdate, CustomizationOut, ProviderCreate, ProviderOut, ProviderUpdate
from guincho.services import provider_service
from guincho.services.plans import PlanConfig, get_plan
from guincho.services.subscription_service import (
    get_or_create_subscription,
    get_subscription_row,
    subscription_to_dict,
)

logger = logging.getLogger("guincho.admin")

AdminHandler = Callable[[AsyncSession, Optional[str], Dict[str, Any]], Awaitable[Dict[str, Any]]]


def check_admin_password(candidate: Optional[str], expected: str = ADMIN_PASSWORD) -> bool:
    if not candidate or not expected:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


def _require_provider_id(provider_id: Optional[str]) -> str:
    if not provider_id:
        raise ValidationError("provider_id é obrigatório")
    return provider_id


def _parse_model(model, data: Dict[str, Any]):
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ()))
        raise ValidationError(f"Campo inválido: {field} ({first.get('msg')})")


# ─────────────────────────────────────────────
# SUBSCRIPTION OVERRIDES
# ─────────────────────────────────────────────

async def toggle_trial(db: AsyncSession, provider_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
    provider_id = _require_provider_id(provider_id)
    await provider_service.get_provider(db, provider_id)

    row = await get_subscription_row(db, provider_id)
    if row is None:
        row = await get_or_create_subscription(db, provider_id, trial_ativo=True)
        logger.info("Created trial subscription provider_id=%s", provider_id)
        return {"success": True, "trial_ativo": row.trial_ativo, "trial_corridas_restantes": row.trial_corridas_restantes}

    row.trial_ativo = not row.trial_ativo
    row.trial_corridas_restantes = TRIAL_DEFAULT_RIDES if row.trial_ativo else 0
    await db.commit()
    logger.info("Toggled trial provider_id=%s trial_ativo=%s", provider_id, row.trial_ativo)
    return {"success": True, "trial_ativo": row.trial_ativo, "trial_corridas_restantes": row.trial_corridas_restantes}


def _parse_rides(raw: Any) -> int:
    if raw is None or isinstance(raw, bool):
        raise ValidationError("provider_id e rides são obrigatórios")
    try:
        rides = int(str(raw).strip())
    except ValueError:
        raise ValidationError("rides deve ser um número inteiro")
    if rides < 0:
        raise ValidationError("rides não pode ser negativo")
    return rides


async def set_trial_rides(db: AsyncSession, provider_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
    if not provider_id:
        raise ValidationError("provider_id e rides são obrigatórios")
    rides = _parse_rides(data.get("rides"))
    await provider_service.get_provider(db, provider_id)

    row = await get_or_create_subscription(db, provider_id, trial_ativo=True, trial_corridas_restantes=rides)
    row.trial_ativo = True
    row.trial_corridas_restantes = rides
    await db.commit()
    logger.info("Set trial rides provider_id=%s rides=%s", provider_id, rides)
    return {"success": True, "rides": rides}


def plan_values(config: PlanConfig, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    return {
        "plano": config.slug,
        "adesao_paga": True,
        "adesao_paga_em": now,
        "trial_ativo": False,
        "trial_corridas_restantes": 0,
        "corridas_usadas": 0,
        "limite_corridas": config.limite_corridas,
        "mensalidade_atual": config.mensalidade,
        "proxima_cobranca": now + timedelta(days=BILLING_CYCLE_DAYS),
    }


async def apply_plan(
        db: AsyncSession,
        provider_id: str,
        config: PlanConfig,
        now: Optional[datetime] = None,
        **extra: Any,
) -> ProviderSubscription:
    """Upsert a paid plan onto the provider's row. Shared with billing."""
    values = plan_values(config, now)
    values.update(extra)
    row = await get_or_create_subscription(db, provider_id, **values)
    for field, value in values.items():
        setattr(row, field, value)
    await db.commit()
    return row


async def activate_plan(db: AsyncSession, provider_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
    if not provider_id or not data.get("plano"):
        raise ValidationError("provider_id e plano são obrigatórios")
    config = get_plan(data.get("plano"))
    await provider_service.get_provider(db, provider_id)

    row = await apply_plan(db, provider_id, config)
    logger.info("Activated plan provider_id=%s plano=%s", provider_id, config.slug)
    return {
        "success": True,
        "plano": row.plano,
        "limite_corridas": row.limite_corridas,
        "mensalidade_atual": row.mensalidade_atual,
        "proxima_cobranca": row.proxima_cobranca.isoformat(),
    }


async def reset_rides(db: AsyncSession, provider_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
    provider_id = _require_provider_id(provider_id)
    await provider_service.get_provider(db, provider_id)

    row = await get_or_create_subscription(db, provider_id)
    row.corridas_usadas = 0
    await db.commit()
    logger.info("Reset rides provider_id=%s", provider_id)
    return {"success": True, "corridas_usadas": 0}


async def deactivate_plan(db: AsyncSession, provider_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
    provider_id = _require_provider_id(provider_id)
    await provider_service.get_provider(db, provider_id)

    values = {
        "plano": None,
        "adesao_paga": False,
        "trial_ativo": False,
        "trial_corridas_restantes": 0,
        "limite_corridas": 0,
        "mensalidade_atual": 0,
    }
    row = await get_or_create_subscription(db, provider_id, **values)
    for field, value in values.items():
        setattr(row, field, value)
    await db.commit()
    logger.info("Deactivated plan provider_id=%s", provider_id)
    return {"success": True}


# ─────────────────────────────────────────────
# PROVIDER MANAGEMENT
# ─────────────────────────────────────────────

async def list_providers(db: AsyncSession, provider_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
    rows = (
        await db.execute(
            select(Provider, ProviderSubscription)
            .outerjoin(ProviderSubscription, ProviderSubscription.provider_id == Provider.id)
            .order_by(Provider.created_at.desc())
        )
    ).all()
    providers = []
    for provider, subscription in rows:
        item = ProviderOut.model_validate(provider).model_dump(mode="json")
        item["provider_subscriptions"] = subscription_to_dict(subscription) if subscription else None
        providers.append(item)
    logger.info("Listed providers count=%d", len(providers))
    return {"providers": providers}


async def create_provider(db: AsyncSession, provider_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
    payload = _parse_model(ProviderCreate, data)
    provider = await provider_service.create_provider(db, payload)
    return {"success": True, "provider": ProviderOut.model_validate(provider).model_dump(mode="json")}


async def update_provider(db: AsyncSession, provider_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
    provider_id = _require_provider_id(provider_id)
    payload = _parse_model(ProviderUpdate, data)
    provider = await provider_service.update_provider(db, provider_id, payload)
    return {"success": True, "provider": ProviderOut.model_validate(provider).model_dump(mode="json")}


async def update_branding(db: AsyncSession, provider_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
    provider_id = _require_provider_id(provider_id)
    payload = _parse_model(BrandingUpdate, data)
    row = await provider_service.upsert_branding(db, provider_id, payload)
    return {"success": True, "customization": CustomizationOut.model_validate(row).model_dump(mode="json")}


async def generate_slugs(db: AsyncSession, provider_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
    updated = await provider_service.generate_missing_slugs(db)
    if not updated:
        return {"success": True, "message": "Todos os prestadores já possuem slug", "updated": 0}
    return {"success": True, "message": f"{updated} prestadores atualizados com slugs", "updated": updated}


async def list_locations(db: AsyncSession, provider_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
    return {"locations": await provider_service.list_locations(db)}


async def toggle_provider_online(db: AsyncSession, provider_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
    target = data.get("provider_id") or provider_id
    if not target or "is_online" not in data:
        raise ValidationError("provider_id e is_online são obrigatórios")
    is_online = bool(data["is_online"])
    await provider_service.set_online(db, target, is_online)
    return {"success": True, "is_online": is_online}


ACTIONS: Dict[str, AdminHandler] = {
    "toggle_trial": toggle_trial,
    "set_trial_rides": set_trial_rides,
    "activate_plan": activate_plan,
    "reset_rides": reset_rides,
    "deactivate_plan": deactivate_plan,
    "list_providers": list_providers,
    "create_provider": create_provider,
    "update_provider": update_provider,
    "update_branding": update_branding,
    "generate_slugs": generate_slugs,
    "list_locations": list_locations,
    "toggle_provider_online": toggle_provider_online,
}


async def run_action(
        db: AsyncSession,
        action: Optional[str],
        provider_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    handler = ACTIONS.get(action or "")
    if handler is None:
        raise ValidationError(f"Ação desconhecida: {action}")
    logger.info("Action requested action=%s provider_id=%s", action, provider_id)
    return await handler(db, provider_id, data or {})
