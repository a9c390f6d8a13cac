# =========================================================
# FILE: guincho/services/tenant_service.py
# =========================================================

import colorsys
import logging
from typing import Dict, Iterable, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from guincho.core.config import DEFAULT_PRIMARY_COLOR, DEFAULT_SECONDARY_COLOR, MAIN_DOMAINS
from guincho.models.provider import Provider
from guincho.models.provider_customization import ProviderCustomization
from guincho.schemas.tenant import TenantBranding

logger = logging.getLogger("guincho.tenant")


def normalize_hostname(hostname: Optional[str]) -> str:
    host = (hostname or "").strip().lower()
    if host.startswith("[") and "]" in host:
        return host[1:host.index("]")]
    if host.count(":") == 1:
        host = host.split(":", 1)[0]
    return host.rstrip(".")


def is_main_domain(hostname: str, main_domains: Iterable[str] = MAIN_DOMAINS) -> bool:
    return any(hostname == d or hostname.endswith(f".{d}") for d in main_domains)


def extract_slug(hostname: str, main_domains: Iterable[str] = MAIN_DOMAINS) -> Optional[str]:
    """joao.seudominio.com -> joao. Apex custom domains carry no slug."""
    if is_main_domain(hostname, main_domains):
        return None
    parts = hostname.split(".")
    if len(parts) >= 3 and parts[0]:
        return parts[0]
    return None


def hex_to_hsl(value: Optional[str]) -> Optional[Tuple[int, int, int]]:
    raw = (value or "").lstrip("#")
    if len(raw) != 6:
        return None
    try:
        r, g, b = (int(raw[i:i + 2], 16) / 255 for i in (0, 2, 4))
    except ValueError:
        return None
    h, l, s = colorsys.rgb_to_hls(r, g, b)
    return round(h * 360), round(s * 100), round(l * 100)


def branding_css_variables(primary: str, secondary: str) -> Dict[str, str]:
    variables: Dict[str, str] = {}
    for name, color in (("--primary", primary), ("--accent", secondary)):
        hsl = hex_to_hsl(color)
        if hsl:
            variables[name] = f"{hsl[0]} {hsl[1]}% {hsl[2]}%"
    return variables


def default_branding() -> TenantBranding:
    return TenantBranding(
        primaryColor=DEFAULT_PRIMARY_COLOR,
        secondaryColor=DEFAULT_SECONDARY_COLOR,
        cssVariables=branding_css_variables(DEFAULT_PRIMARY_COLOR, DEFAULT_SECONDARY_COLOR),
    )


def provider_branding(provider: Provider, customization: Optional[ProviderCustomization]) -> TenantBranding:
    primary = (customization and customization.primary_color) or DEFAULT_PRIMARY_COLOR
    secondary = (customization and customization.secondary_color) or DEFAULT_SECONDARY_COLOR
    return TenantBranding(
        providerId=provider.id,
        providerName=provider.name,
        companyName=(customization and customization.company_name) or provider.name,
        logoUrl=customization.logo_url if customization else None,
        primaryColor=primary,
        secondaryColor=secondary,
        slug=provider.slug,
        customDomain=customization.custom_domain if customization else None,
        isWhiteLabel=True,
        cssVariables=branding_css_variables(primary, secondary),
    )


async def resolve_tenant(
        db: AsyncSession,
        hostname: Optional[str],
        main_domains: Iterable[str] = MAIN_DOMAINS,
) -> TenantBranding:
    host = normalize_hostname(hostname)
    if not host or is_main_domain(host, main_domains):
        return default_branding()

    provider: Optional[Provider] = None
    customization: Optional[ProviderCustomization] = None

    slug = extract_slug(host, main_domains)
    if slug:
        provider = (await db.execute(select(Provider).where(Provider.slug == slug))).scalar_one_or_none()

    if provider is None:
        row = (
            await db.execute(
                select(ProviderCustomization, Provider)
                .join(Provider, Provider.id == ProviderCustomization.provider_id)
                .where(ProviderCustomization.custom_domain == host)
            )
        ).first()
        if row is not None:
            customization, provider = row

    if provider is None:
        logger.info("Unrecognized host=%s, serving marketplace", host)
        return default_branding()

    if customization is None:
        customization = (
            await db.execute(
                select(ProviderCustomization).where(ProviderCustomization.provider_id == provider.id)
            )
        ).scalar_one_or_none()

    logger.info("Resolved host=%s provider_id=%s slug=%s", host, provider.id, provider.slug)
    return provider_branding(provider, customization)
