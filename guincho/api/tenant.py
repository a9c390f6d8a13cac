from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from guincho.api.deps import get_db, request_hostname
from guincho.schemas.tenant import TenantBranding
from guincho.services.tenant_service import resolve_tenant

router = APIRouter(prefix="/api", tags=["tenant"])


@router.get("/tenant", response_model=TenantBranding)
async def tenant(request: Request, hostname: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    return await resolve_tenant(db, hostname or request_hostname(request))
