from typing import Optional
from pydantic import BaseModel


class CheckoutRequest(BaseModel):
    provider_id: Optional[str] = None
    plano: Optional[str] = None  # basico, profissional, pro
    whatsapp: Optional[str] = None


class CheckoutResponse(BaseModel):
    url: str


class PaymentVerifyRequest(BaseModel):
    provider_id: Optional[str] = None
    whatsapp: Optional[str] = None


class PaymentVerifyResponse(BaseModel):
    adesao_paga: bool
    plano: Optional[str] = None
    subscription_active: bool = False
    limite_corridas: Optional[int] = None
    mensalidade_valor: Optional[float] = None
    proxima_cobranca: Optional[str] = None
    stripe_customer_id: Optional[str] = None
