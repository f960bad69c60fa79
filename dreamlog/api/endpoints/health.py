# dreamlog/api/endpoints/health.py
from fastapi import APIRouter

from dreamlog.core import clock

router = APIRouter()


@router.get("/health")
async def health():
    return {"ok": True, "ts": clock.now_ms()}
