# =========================================================
# FILE: guincho/api/providers.py
# =========================================================

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from guincho.api.deps import get_db
from guincho.core.errors import GuinchoError, ProviderNotFound
from guincho.schemas.providers import (
    LocationUpdate,
    NearbyProvider,
    OnlineProvider,
    ProviderCreate,
    ProviderOut,
)
from guincho.services import provider_service

router = APIRouter(prefix="/api/providers", tags=["providers"])


@router.post("", response_model=ProviderOut)
async def register_provider(body: ProviderCreate, db: AsyncSession = Depends(get_db)):
    return await provider_service.create_provider(db, body)


@router.get("/nearby", response_model=List[NearbyProvider])
async def nearby(
        lat: float = Query(..., ge=-90, le=90),
        lng: float = Query(..., ge=-180, le=180),
        max_km: float = Query(50, gt=0),
        needs_patins: bool = False,
        db: AsyncSession = Depends(get_db),
):
    return await provider_service.nearby_providers(db, lat, lng, max_km=max_km, needs_patins=needs_patins)


@router.get("/online")
async def online(db: AsyncSession = Depends(get_db)) -> Dict[str, List[OnlineProvider]]:
    return {"providers": await provider_service.online_providers(db)}


@router.post("/location")
async def update_location(body: LocationUpdate, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    if not body.prestadorId:
        raise HTTPException(status_code=400, detail="prestadorId is required")

    try:
        if body.offline:
            await provider_service.set_online(db, body.prestadorId, False)
            return {"success": True, "status": "offline"}

        if body.latitude is None or body.longitude is None:
            raise HTTPException(status_code=400, detail="latitude and longitude are required")

        row = await provider_service.update_location(db, body.prestadorId, body.latitude, body.longitude)
    except ProviderNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except GuinchoError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return {
        "success": True,
        "data": {
            "provider_id": row.provider_id,
            "latitude": row.latitude,
            "longitude": row.longitude,
            "is_online": row.is_online,
            "last_seen_at": row.last_seen_at.isoformat(),
        },
    }
