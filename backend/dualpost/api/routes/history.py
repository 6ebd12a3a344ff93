import asyncio

from fastapi import APIRouter, Depends, Query

from ...services import HistoryService
from ..deps import current_user_id


router = APIRouter(prefix="/history", tags=["history"])


@router.get("")
async def list_history(
    limit: int = Query(default=100, ge=1, le=500),
    user_id: str = Depends(current_user_id),
):
    """Return the caller's publish history, newest first."""
    entries = await asyncio.to_thread(HistoryService.list_entries, user_id, limit)
    return {"history": [entry.model_dump(mode="json") for entry in entries]}
