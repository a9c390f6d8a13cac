# /guincho/models/provider_subscription.py
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Float, Boolean, ForeignKey, DateTime

from guincho.core.database import Base


class ProviderSubscription(Base):
    """Trial and paid-plan metering state, one row per provider."""
    __tablename__ = "provider_subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    provider_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("providers.id", ondelete="CASCADE"), unique=True, index=True
    )

    # Plan slug: basico, profissional, pro
    plano: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    adesao_paga: Mapped[bool] = mapped_column(Boolean, default=False)
    adesao_paga_em: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    trial_ativo: Mapped[bool] = mapped_column(Boolean, default=True)
    trial_corridas_restantes: Mapped[int] = mapped_column(Integer, default=0)

    # Rides used in the current billing cycle
    corridas_usadas: Mapped[int] = mapped_column(Integer, default=0)

    # -1 unlimited, 0 no active plan, >0 cap
    limite_corridas: Mapped[int] = mapped_column(Integer, default=0)

    mensalidade_atual: Mapped[float] = mapped_column(Float, default=0)
    proxima_cobranca: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(190), nullable=True)
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(String(190), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
