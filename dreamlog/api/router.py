# dreamlog/api/router.py
from fastapi import APIRouter

from dreamlog.api.endpoints import auth, chat, completions, dreams, health

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(auth.router, tags=["auth"])
api_router.include_router(dreams.router, prefix="/dreams", tags=["dreams"])
api_router.include_router(completions.router, tags=["completions"])
api_router.include_router(chat.router, tags=["chat"])
