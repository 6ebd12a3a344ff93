from fastapi import APIRouter

from .publish import router as publish_router
from .history import router as history_router
from .connections import router as connections_router

api_router = APIRouter(prefix="/api")
api_router.include_router(publish_router)
api_router.include_router(history_router)
api_router.include_router(connections_router)

__all__ = ["api_router"]
