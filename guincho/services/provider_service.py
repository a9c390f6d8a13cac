# =========================================================
# FILE: guincho/services/provider_service.py
# =========================================================

import logging
import math
import re
import unicodedata
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from guincho.core.config import ONLINE_WINDOW_SECONDS
from guincho.core.errors import ProviderNotFound, ValidationError
from guincho.models.provider import Provider
from guincho.models.provider_customization import ProviderCustomization
from guincho.models.provider_online_status import ProviderOnlineStatus
from guincho.schemas.providers import (
    BrandingUpdate,
    NearbyProvider,
    OnlineProvider,
    ProviderCreate,
    ProviderOut,
    ProviderUpdate,
)

logger = logging.getLogger("guincho.providers")

DEFAULT_BASE_PRICE = 50.0
DEFAULT_PRICE_PER_KM = 5.0
DEFAULT_PATINS_EXTRA_PRICE = 30.0

EARTH_RADIUS_KM = 6371.0
AVERAGE_SPEED_KMH = 40.0

MAX_SLUG_ATTEMPTS = 3

# NOT NULL columns an update may not clear
REQUIRED_PROVIDER_FIELDS = ("name", "whatsapp", "latitude", "longitude", "has_patins")


# ─────────────────────────────────────────────
# LOOKUPS
# ─────────────────────────────────────────────

def digits_only(value: Optional[str]) -> str:
    return re.sub(r"\D", "", value or "")


async def get_provider(db: AsyncSession, provider_id: Optional[str]) -> Provider:
    if not provider_id:
        raise ValidationError("provider_id é obrigatório")
    provider = await db.get(Provider, provider_id)
    if provider is None:
        raise ProviderNotFound()
    return provider


async def find_provider_by_whatsapp(db: AsyncSession, whatsapp: str) -> Optional[Provider]:
    """Match on the last 8 digits; stored numbers may carry formatting
    such as ``(11) 98765-4321``."""
    clean = digits_only(whatsapp)
    if not clean:
        return None
    last8 = clean[-8:]
    pattern = f"%{last8[:4]}%{last8[4:]}%"
    rows = (
        await db.execute(
            select(Provider)
            .where(Provider.whatsapp.ilike(pattern))
            .order_by(Provider.created_at)
            .limit(1)
        )
    ).scalars().all()
    return rows[0] if rows else None


# ─────────────────────────────────────────────
# SLUGS
# ─────────────────────────────────────────────

def slugify(name: str) -> str:
    text = unicodedata.normalize("NFD", (name or "").lower())
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Mn")
    text = re.sub(r"[^a-z0-9\s-]", "", text)
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")


def unique_slug(base: str, used: Set[str]) -> str:
    base = base or "prestador"
    slug = base
    counter = 1
    while slug in used:
        slug = f"{base}-{counter}"
        counter += 1
    return slug


async def _used_slugs(db: AsyncSession) -> Set[str]:
    rows = (await db.execute(select(Provider.slug).where(Provider.slug.is_not(None)))).scalars().all()
    return set(rows)


async def generate_missing_slugs(db: AsyncSession) -> int:
    providers = (
        await db.execute(select(Provider).where(Provider.slug.is_(None)).order_by(Provider.created_at))
    ).scalars().all()
    if not providers:
        return 0

    used = await _used_slugs(db)
    for provider in providers:
        provider.slug = unique_slug(slugify(provider.name), used)
        used.add(provider.slug)
        logger.info("Slug generated id=%s name=%s slug=%s", provider.id, provider.name, provider.slug)

    await db.commit()
    return len(providers)


# ─────────────────────────────────────────────
# REGISTRATION
# ─────────────────────────────────────────────

async def create_provider(db: AsyncSession, data: ProviderCreate) -> Provider:
    for attempt in range(MAX_SLUG_ATTEMPTS):
        used = await _used_slugs(db)
        provider = Provider(
            id=str(uuid.uuid4()),
            name=data.name.strip(),
            whatsapp=data.whatsapp.strip(),
            slug=unique_slug(slugify(data.name), used),
            address=data.address,
            region=data.region,
            latitude=data.latitude,
            longitude=data.longitude,
            has_patins=data.has_patins,
            service_types=list(data.service_types),
            base_price=data.base_price or DEFAULT_BASE_PRICE,
            price_per_km=data.price_per_km or DEFAULT_PRICE_PER_KM,
            patins_extra_price=data.patins_extra_price or DEFAULT_PATINS_EXTRA_PRICE,
            created_at=datetime.utcnow(),
        )
        db.add(provider)
        try:
            await db.commit()
        except IntegrityError:
            # Another registration took the slug between the read and the insert.
            await db.rollback()
            logger.info("Slug taken slug=%s attempt=%d, retrying", provider.slug, attempt + 1)
            continue
        logger.info("Provider created id=%s slug=%s", provider.id, provider.slug)
        return provider

    raise ValidationError("Não foi possível gerar um slug único, tente novamente")


async def update_provider(db: AsyncSession, provider_id: str, data: ProviderUpdate) -> Provider:
    values = data.model_dump(exclude_unset=True)
    missing = [field for field in REQUIRED_PROVIDER_FIELDS if field in values and values[field] is None]
    if missing:
        raise ValidationError(f"Campo obrigatório: {', '.join(missing)}")

    provider = await get_provider(db, provider_id)
    for field, value in values.items():
        setattr(provider, field, value)
    await db.commit()
    logger.info("Provider updated id=%s", provider_id)
    return provider


async def upsert_branding(db: AsyncSession, provider_id: str, data: BrandingUpdate) -> ProviderCustomization:
    await get_provider(db, provider_id)
    row = (
        await db.execute(
            select(ProviderCustomization).where(ProviderCustomization.provider_id == provider_id)
        )
    ).scalar_one_or_none()
    if row is None:
        row = ProviderCustomization(id=str(uuid.uuid4()), provider_id=provider_id, created_at=datetime.utcnow())
        db.add(row)

    values = data.model_dump(exclude_unset=True)
    if values.get("custom_domain"):
        values["custom_domain"] = values["custom_domain"].strip().lower()
    for field, value in values.items():
        setattr(row, field, value or None)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationError("Domínio já está em uso por outro prestador")
    logger.info("Branding saved provider_id=%s custom_domain=%s", provider_id, row.custom_domain)
    return row


# ─────────────────────────────────────────────
# DISTANCE & PRICING
# ─────────────────────────────────────────────

def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def estimate_arrival_minutes(distance_km: float) -> int:
    return round(distance_km / AVERAGE_SPEED_KMH * 60)


def estimate_price(provider: Provider, distance_km: float, needs_patins: bool = False) -> float:
    price = (provider.base_price or DEFAULT_BASE_PRICE) + distance_km * (provider.price_per_km or DEFAULT_PRICE_PER_KM)
    if needs_patins:
        price += provider.patins_extra_price or DEFAULT_PATINS_EXTRA_PRICE
    return round(price, 2)


def rank_nearby(
        providers: Iterable[Provider],
        lat: float,
        lng: float,
        max_km: float = 50,
        needs_patins: bool = False,
) -> List[NearbyProvider]:
    ranked: List[NearbyProvider] = []
    for p in providers:
        if needs_patins and not p.has_patins:
            continue
        distance = haversine_km(lat, lng, p.latitude, p.longitude)
        if distance > max_km:
            continue
        ranked.append(
            NearbyProvider(
                **ProviderOut.model_validate(p).model_dump(),
                distance_km=round(distance, 2),
                estimated_time_min=estimate_arrival_minutes(distance),
                estimated_price=estimate_price(p, distance, needs_patins),
            )
        )
    ranked.sort(key=lambda item: item.distance_km)
    return ranked


async def nearby_providers(
        db: AsyncSession,
        lat: float,
        lng: float,
        max_km: float = 50,
        needs_patins: bool = False,
) -> List[NearbyProvider]:
    providers = (await db.execute(select(Provider))).scalars().all()
    return rank_nearby(providers, lat, lng, max_km=max_km, needs_patins=needs_patins)


# ─────────────────────────────────────────────
# ONLINE STATUS
# ─────────────────────────────────────────────

async def _online_row(db: AsyncSession, provider_id: str) -> Optional[ProviderOnlineStatus]:
    return (
        await db.execute(
            select(ProviderOnlineStatus).where(ProviderOnlineStatus.provider_id == provider_id)
        )
    ).scalar_one_or_none()


async def update_location(db: AsyncSession, provider_id: str, latitude: float, longitude: float) -> ProviderOnlineStatus:
    await get_provider(db, provider_id)
    now = datetime.utcnow()
    row = await _online_row(db, provider_id)
    if row is None:
        row = ProviderOnlineStatus(id=str(uuid.uuid4()), provider_id=provider_id)
        db.add(row)
    row.latitude = latitude
    row.longitude = longitude
    row.is_online = True
    row.last_seen_at = now
    row.updated_at = now
    await db.commit()
    logger.info("Location updated provider_id=%s lat=%s lng=%s", provider_id, latitude, longitude)
    return row


async def set_online(db: AsyncSession, provider_id: str, is_online: bool) -> Optional[ProviderOnlineStatus]:
    provider = await get_provider(db, provider_id)
    now = datetime.utcnow()
    row = await _online_row(db, provider_id)
    if row is None:
        if not is_online:
            return None
        # No live position yet, start from the registered address.
        row = ProviderOnlineStatus(
            id=str(uuid.uuid4()),
            provider_id=provider_id,
            latitude=provider.latitude,
            longitude=provider.longitude,
        )
        db.add(row)
    row.is_online = is_online
    row.updated_at = now
    if is_online:
        row.last_seen_at = now
    await db.commit()
    logger.info("Online status provider_id=%s is_online=%s", provider_id, is_online)
    return row


async def online_providers(db: AsyncSession, now: Optional[datetime] = None) -> List[OnlineProvider]:
    cutoff = (now or datetime.utcnow()) - timedelta(seconds=ONLINE_WINDOW_SECONDS)
    rows = (
        await db.execute(
            select(ProviderOnlineStatus, Provider)
            .join(Provider, Provider.id == ProviderOnlineStatus.provider_id)
            .where(ProviderOnlineStatus.is_online.is_(True), ProviderOnlineStatus.last_seen_at >= cutoff)
        )
    ).all()
    logger.info("Found %d online providers", len(rows))
    return [
        OnlineProvider(
            id=provider.id,
            name=provider.name or "Prestador",
            latitude=status.latitude,
            longitude=status.longitude,
            whatsapp=provider.whatsapp,
            has_patins=provider.has_patins,
            service_types=provider.service_types or [],
            base_price=provider.base_price or DEFAULT_BASE_PRICE,
            price_per_km=provider.price_per_km or DEFAULT_PRICE_PER_KM,
            patins_extra_price=provider.patins_extra_price or DEFAULT_PATINS_EXTRA_PRICE,
            last_seen_at=status.last_seen_at,
        )
        for status, provider in rows
    ]


async def list_locations(db: AsyncSession) -> List[Dict[str, Any]]:
    rows = (
        await db.execute(
            select(ProviderOnlineStatus, Provider)
            .join(Provider, Provider.id == ProviderOnlineStatus.provider_id)
            .order_by(ProviderOnlineStatus.last_seen_at.desc())
        )
    ).all()
    return [
        {
            "provider_id": status.provider_id,
            "name": provider.name,
            "whatsapp": provider.whatsapp,
            "latitude": status.latitude,
            "longitude": status.longitude,
            "is_online": status.is_online,
            "last_seen_at": status.last_seen_at.isoformat() if status.last_seen_at else None,
        }
        for status, provider in rows
    ]
