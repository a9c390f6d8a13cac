# FILE: guincho/services/plans.py
from dataclasses import dataclass
from typing import Dict, Optional

from guincho.core.errors import ValidationError

UNLIMITED = -1


@dataclass(frozen=True)
class PlanConfig:
    slug: str
    limite_corridas: int
    mensalidade: float
    # One-time signup fee recorded in provider_payments
    adesao: float


PLANS: Dict[str, PlanConfig] = {
    "basico": PlanConfig(slug="basico", limite_corridas=50, mensalidade=47, adesao=149),
    "profissional": PlanConfig(slug="profissional", limite_corridas=150, mensalidade=39, adesao=249),
    "pro": PlanConfig(slug="pro", limite_corridas=UNLIMITED, mensalidade=19.90, adesao=599),
}


def get_plan(plano: Optional[str]) -> PlanConfig:
    config = PLANS.get(plano or "")
    if not config:
        raise ValidationError("Plano inválido")
    return config
