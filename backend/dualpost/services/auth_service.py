from __future__ import annotations

import logging

from google.auth import exceptions as google_auth_exceptions
from google.auth.transport.requests import Request
from google.oauth2 import id_token

from ..config import settings
from ..errors import Unauthorized

logger = logging.getLogger("uvicorn.error")


class AuthService:
    """Resolves the caller's user id from a Firebase ID token."""

    @classmethod
    def is_configured(cls) -> bool:
        return bool(settings.firebase_project_id)

    @classmethod
    def _bearer_token(cls, authorization: str | None) -> str:
        if not authorization or not authorization.startswith("Bearer "):
            raise Unauthorized("Missing bearer token")
        token = authorization[len("Bearer "):].strip()
        if not token:
            raise Unauthorized("Missing bearer token")
        return token

    @classmethod
    def verify_bearer(cls, authorization: str | None) -> str:
        token = cls._bearer_token(authorization)
        if not cls.is_configured():
            raise Unauthorized("Identity provider is not configured (set DUALPOST_FIREBASE_PROJECT_ID)")
        try:
            claims = id_token.verify_firebase_token(
                token,
                Request(),
                audience=settings.firebase_project_id,
            )
        except (ValueError, google_auth_exceptions.GoogleAuthError) as exc:
            logger.info("Rejected caller ID token: %s", exc)
            raise Unauthorized("Invalid or expired ID token") from exc
        user_id = (claims or {}).get("user_id") or (claims or {}).get("sub")
        if not user_id:
            raise Unauthorized("ID token carries no user id")
        return str(user_id)
