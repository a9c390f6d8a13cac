from fastapi import APIRouter

router = APIRouter(tags=["root"])

@router.get("/api/")
async def api_root():
    return {"message": "Guincho Fácil API"}

@router.get("/health")
async def health():
    return {"ok": True}
