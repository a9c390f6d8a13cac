# =========================================================
# FILE: guincho/api/admin.py
# =========================================================

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from guincho.api.deps import get_db, require_admin_password
from guincho.schemas.admin import AdminRequest
from guincho.services import admin_service

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/providers")
async def admin_providers(body: AdminRequest, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    require_admin_password(body.admin_password)
    return await admin_service.run_action(db, body.action, provider_id=body.provider_id, data=body.data)
