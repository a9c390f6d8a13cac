# =========================================================
# FILE: guincho/services/metering_service.py
# =========================================================
"""
Ride metering for providers.

Every mutation is a single ``UPDATE ... WHERE <guard>``: the guard restates
the condition that allowed the ride (trial rides left, cap not reached), so
two requests racing on the same provider can never both pass a check that
only one of them should pass. When a guard matches no row the state moved
under us; the row is read again and the outcome decided from scratch.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from guincho.core.config import TRIAL_DEFAULT_RIDES
from guincho.core.errors import GuinchoError, ValidationError
from guincho.models.provider_subscription import ProviderSubscription as PS
from guincho.services import provider_service
from guincho.services.plans import UNLIMITED
from guincho.services.subscription_service import default_subscription

logger = logging.getLogger("guincho.metering")

MAX_ATTEMPTS = 5

TRIAL_EXHAUSTED = "trial_exhausted"
NO_PLAN = "no_plan"
LIMIT_REACHED = "limit_reached"

MESSAGES = {
    TRIAL_EXHAUSTED: "Suas corridas de teste acabaram. Escolha um plano para continuar.",
    NO_PLAN: "Você precisa escolher um plano para continuar.",
    LIMIT_REACHED: "Você atingiu o limite de {limite} corridas do seu plano.",
}

_STATE_COLUMNS = (
    PS.plano,
    PS.adesao_paga,
    PS.trial_ativo,
    PS.trial_corridas_restantes,
    PS.corridas_usadas,
    PS.limite_corridas,
)

# Guards, one per branch that consumes a ride. They mirror evaluate() below.
TRIAL_GUARD = and_(PS.trial_ativo.is_(True), PS.adesao_paga.is_(False), PS.trial_corridas_restantes > 0)
UNLIMITED_GUARD = and_(PS.adesao_paga.is_(True), or_(PS.plano == "pro", PS.limite_corridas == UNLIMITED))
CAPPED_GUARD = and_(
    PS.adesao_paga.is_(True),
    func.coalesce(PS.plano, "") != "pro",
    PS.limite_corridas > 0,
    PS.corridas_usadas < PS.limite_corridas,
)


def is_unlimited(state: Mapping[str, Any]) -> bool:
    return state.get("plano") == "pro" or state.get("limite_corridas") == UNLIMITED


def evaluate(state: Mapping[str, Any]) -> str:
    """Decide what a ride does to ``state``: a branch name or a block reason."""
    if state["trial_ativo"] and not state["adesao_paga"]:
        if (state["trial_corridas_restantes"] or 0) <= 0:
            return TRIAL_EXHAUSTED
        return "trial"
    if not state["adesao_paga"]:
        return NO_PLAN
    if is_unlimited(state):
        return "unlimited"
    if (state["corridas_usadas"] or 0) >= (state["limite_corridas"] or 0):
        return LIMIT_REACHED
    return "capped"


def _blocked(reason: str, state: Mapping[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = {
        "success": False,
        "blocked": True,
        "reason": reason,
        "message": MESSAGES[reason].format(limite=state.get("limite_corridas")),
    }
    if reason == LIMIT_REACHED:
        result["corridas_usadas"] = state["corridas_usadas"]
        result["limite_corridas"] = state["limite_corridas"]
    return result


async def _read_state(db: AsyncSession, provider_id: str) -> Optional[Dict[str, Any]]:
    row = (
        await db.execute(select(*_STATE_COLUMNS).where(PS.provider_id == provider_id))
    ).mappings().first()
    return dict(row) if row is not None else None


async def _insert_trial(db: AsyncSession, provider_id: str) -> bool:
    values = default_subscription()
    db.add(PS(id=str(uuid.uuid4()), provider_id=provider_id, created_at=datetime.utcnow(), **values))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return False
    return True


async def _guarded_update(db: AsyncSession, provider_id: str, guard, **values: Any) -> bool:
    stmt = (
        update(PS)
        .where(PS.provider_id == provider_id, guard)
        .values(updated_at=datetime.utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def increment_ride(db: AsyncSession, provider_id: Optional[str]) -> Dict[str, Any]:
    if not provider_id:
        raise ValidationError("provider_id é obrigatório")

    for attempt in range(MAX_ATTEMPTS):
        state = await _read_state(db, provider_id)

        if state is None:
            await provider_service.get_provider(db, provider_id)
            if await _insert_trial(db, provider_id):
                logger.info("Created trial subscription provider_id=%s", provider_id)
                return {
                    "success": True,
                    "blocked": False,
                    "trial_ativo": True,
                    "trial_corridas_restantes": TRIAL_DEFAULT_RIDES,
                    "corridas_usadas": 0,
                }
            continue

        branch = evaluate(state)
        if branch in MESSAGES:
            # Nothing was written; commit only ends the read transaction.
            await db.commit()
            logger.info("Ride blocked provider_id=%s reason=%s state=%s", provider_id, branch, state)
            return _blocked(branch, state)

        if branch == "trial":
            applied = await _guarded_update(
                db, provider_id, TRIAL_GUARD,
                trial_corridas_restantes=PS.trial_corridas_restantes - 1,
                corridas_usadas=PS.corridas_usadas + 1,
            )
        elif branch == "unlimited":
            applied = await _guarded_update(
                db, provider_id, UNLIMITED_GUARD,
                corridas_usadas=PS.corridas_usadas + 1,
            )
        else:
            applied = await _guarded_update(
                db, provider_id, CAPPED_GUARD,
                corridas_usadas=PS.corridas_usadas + 1,
            )

        if not applied:
            await db.rollback()
            logger.info("Guard failed provider_id=%s branch=%s attempt=%d, re-reading", provider_id, branch, attempt + 1)
            continue

        after = await _read_state(db, provider_id)
        await db.commit()

        if branch == "trial":
            logger.info("Decremented trial ride provider_id=%s remaining=%s", provider_id, after["trial_corridas_restantes"])
            return {
                "success": True,
                "blocked": False,
                "trial_ativo": True,
                "trial_corridas_restantes": after["trial_corridas_restantes"],
                "corridas_usadas": after["corridas_usadas"],
            }

        limite = UNLIMITED if branch == "unlimited" else after["limite_corridas"]
        logger.info(
            "Incremented ride provider_id=%s plano=%s used=%s limit=%s",
            provider_id, after["plano"], after["corridas_usadas"], limite,
        )
        return {
            "success": True,
            "blocked": False,
            "plano": after["plano"],
            "corridas_usadas": after["corridas_usadas"],
            "limite_corridas": limite,
        }

    raise GuinchoError("Não foi possível registrar a corrida, tente novamente")
