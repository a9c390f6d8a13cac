# /guincho/models/provider.py
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Float, Boolean, JSON, DateTime

from guincho.core.database import Base


class Provider(Base):
    """Towing provider registered on the marketplace."""
    __tablename__ = "providers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    whatsapp: Mapped[str] = mapped_column(String(30), index=True)

    # Subdomain label used for white-label routing (joao.seudominio.com)
    slug: Mapped[Optional[str]] = mapped_column(String(120), unique=True, nullable=True)

    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    latitude: Mapped[float] = mapped_column(Float)
    longitude: Mapped[float] = mapped_column(Float)

    # Whether the truck carries dollies (patins)
    has_patins: Mapped[bool] = mapped_column(Boolean, default=False)

    # guincho_completo, reboque, pane_seca, ...
    service_types: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    base_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True, default=50)
    price_per_km: Mapped[Optional[float]] = mapped_column(Float, nullable=True, default=5)
    patins_extra_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True, default=30)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
