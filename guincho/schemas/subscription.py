from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict


class SubscriptionLookup(BaseModel):
    provider_id: Optional[str] = None
    whatsapp: Optional[str] = None


class SubscriptionResponse(BaseModel):
    found: bool
    message: Optional[str] = None
    provider: Optional[Dict[str, Any]] = None
    subscription: Optional[Dict[str, Any]] = None
    customization: Optional[Dict[str, Any]] = None
    needs_plan_selection: Optional[bool] = None


class RideIncrementRequest(BaseModel):
    provider_id: Optional[str] = None


class RideIncrementResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")
    success: bool
    blocked: bool
    reason: Optional[str] = None  # trial_exhausted, no_plan, limit_reached
    message: Optional[str] = None
    plano: Optional[str] = None
    trial_ativo: Optional[bool] = None
    trial_corridas_restantes: Optional[int] = None
    corridas_usadas: Optional[int] = None
    limite_corridas: Optional[int] = None
