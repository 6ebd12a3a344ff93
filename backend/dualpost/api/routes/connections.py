import asyncio

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from ...models import PLATFORM_FACEBOOK, SUPPORTED_PLATFORMS, PlatformCredential, PlatformName
from ...services import CredentialService
from ..deps import current_user_id


router = APIRouter(prefix="/connections", tags=["connections"])


@router.get("/status")
async def connection_status(user_id: str = Depends(current_user_id)):
    """Report which platforms the caller has connected."""
    connected = await asyncio.to_thread(CredentialService.connected_platforms, user_id)
    return {
        platform: {
            "connected": platform in connected,
            "account_id": connected[platform].account_id if platform in connected else None,
            "account_name": connected[platform].account_name if platform in connected else None,
        }
        for platform in SUPPORTED_PLATFORMS
    }


@router.put("/{platform}")
async def save_connection(
    platform: PlatformName,
    payload: dict,
    user_id: str = Depends(current_user_id),
):
    """Store token material obtained by the client (e.g. a selected Facebook Page token)."""
    try:
        credential = PlatformCredential.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if platform == PLATFORM_FACEBOOK and not credential.account_id:
        raise HTTPException(status_code=400, detail="Facebook connections require the Page id as account_id")
    await asyncio.to_thread(CredentialService.set, user_id, platform, credential)
    return {"message": f"{platform} connected"}


@router.delete("/{platform}")
async def delete_connection(
    platform: PlatformName,
    user_id: str = Depends(current_user_id),
):
    """Disconnect a platform for the caller."""
    removed = await asyncio.to_thread(CredentialService.delete, user_id, platform)
    if not removed:
        raise HTTPException(status_code=404, detail=f"{platform} is not connected")
    return {"message": f"{platform} disconnected"}
