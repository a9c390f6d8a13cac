# /guincho/models/provider_online_status.py
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Float, Boolean, ForeignKey, DateTime

from guincho.core.database import Base


class ProviderOnlineStatus(Base):
    """Last known position of a provider and whether it is taking rides."""
    __tablename__ = "provider_online_status"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    provider_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("providers.id", ondelete="CASCADE"), unique=True, index=True
    )

    latitude: Mapped[float] = mapped_column(Float)
    longitude: Mapped[float] = mapped_column(Float)
    is_online: Mapped[bool] = mapped_column(Boolean, default=True)

    last_seen_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
