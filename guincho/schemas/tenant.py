from typing import Dict, Optional
from pydantic import BaseModel, Field


class TenantBranding(BaseModel):
    """Branding the front end renders for a hostname. Field names follow the
    front end's camelCase contract."""
    providerId: Optional[str] = None
    providerName: Optional[str] = None
    companyName: Optional[str] = None
    logoUrl: Optional[str] = None
    primaryColor: str
    secondaryColor: str
    slug: Optional[str] = None
    customDomain: Optional[str] = None
    isWhiteLabel: bool = False
    cssVariables: Dict[str, str] = Field(default_factory=dict)
