# /guincho/models/provider_customization.py
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, ForeignKey, DateTime

from guincho.core.database import Base


class ProviderCustomization(Base):
    """White-label branding for a provider."""
    __tablename__ = "provider_customization"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    provider_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("providers.id", ondelete="CASCADE"), unique=True, index=True
    )

    company_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Hex colors, e.g. #6366f1
    primary_color: Mapped[Optional[str]] = mapped_column(String(9), nullable=True)
    secondary_color: Mapped[Optional[str]] = mapped_column(String(9), nullable=True)

    custom_domain: Mapped[Optional[str]] = mapped_column(String(190), unique=True, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
