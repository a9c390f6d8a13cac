from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProviderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    name: str
    whatsapp: str
    slug: Optional[str] = None
    address: Optional[str] = None
    region: Optional[str] = None
    latitude: float
    longitude: float
    has_patins: bool = False
    service_types: List[str] = Field(default_factory=list)
    base_price: Optional[float] = None
    price_per_km: Optional[float] = None
    patins_extra_price: Optional[float] = None
    created_at: Optional[datetime] = None

    @field_validator("service_types", mode="before")
    @classmethod
    def _none_to_list(cls, v):
        return v or []


class CustomizationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    provider_id: str
    company_name: Optional[str] = None
    logo_url: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    custom_domain: Optional[str] = None


class ProviderCreate(BaseModel):
    name: str = Field(..., min_length=1)
    whatsapp: str = Field(..., min_length=8)
    has_patins: bool = False
    service_types: List[str] = Field(..., min_length=1)
    latitude: float = 0.0
    longitude: float = 0.0
    address: Optional[str] = None
    region: Optional[str] = None
    base_price: Optional[float] = None
    price_per_km: Optional[float] = None
    patins_extra_price: Optional[float] = None


class ProviderUpdate(BaseModel):
    name: Optional[str] = None
    whatsapp: Optional[str] = None
    has_patins: Optional[bool] = None
    service_types: Optional[List[str]] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    region: Optional[str] = None
    base_price: Optional[float] = None
    price_per_km: Optional[float] = None
    patins_extra_price: Optional[float] = None


class BrandingUpdate(BaseModel):
    company_name: Optional[str] = None
    logo_url: Optional[str] = None
    primary_color: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")
    secondary_color: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")
    custom_domain: Optional[str] = None


class LocationUpdate(BaseModel):
    """Body sent by the provider app while it is on duty."""
    prestadorId: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    offline: bool = False


class NearbyProvider(ProviderOut):
    distance_km: float
    estimated_time_min: int
    estimated_price: float


class OnlineProvider(BaseModel):
    id: str
    name: str
    latitude: float
    longitude: float
    whatsapp: Optional[str] = None
    has_patins: bool = False
    service_types: List[str] = Field(default_factory=list)
    base_price: float
    price_per_km: float
    patins_extra_price: float
    last_seen_at: datetime
