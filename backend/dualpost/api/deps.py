import asyncio

from fastapi import Header, HTTPException

from ..errors import Unauthorized
from ..services import AuthService


async def current_user_id(authorization: str | None = Header(default=None)) -> str:
    """Resolve the caller from the ``Authorization: Bearer <id token>`` header."""
    try:
        return await asyncio.to_thread(AuthService.verify_bearer, authorization)
    except Unauthorized as exc:
        raise HTTPException(status_code=401, detail=exc.message)
