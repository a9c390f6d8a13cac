# /guincho/models/provider_payment.py
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Float, ForeignKey, DateTime

from guincho.core.database import Base


class ProviderPayment(Base):
    """Payment records for provider plans."""
    __tablename__ = "provider_payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    provider_id: Mapped[str] = mapped_column(String(36), ForeignKey("providers.id", ondelete="CASCADE"), index=True)

    # Kind: adesao (signup fee), mensalidade
    tipo: Mapped[str] = mapped_column(String(20))

    # Amount in BRL
    valor: Mapped[float] = mapped_column(Float)

    # Status: pendente, pago
    status: Mapped[str] = mapped_column(String(20), default="pendente")

    stripe_payment_intent_id: Mapped[Optional[str]] = mapped_column(String(190), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
