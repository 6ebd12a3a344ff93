from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any
import json
import logging

from ..config import settings
from ..models import SUPPORTED_PLATFORMS, PlatformCredential

logger = logging.getLogger("uvicorn.error")


def merge_rotated_credential(
    previous: PlatformCredential,
    *,
    access_token: str,
    refresh_token: str | None,
    expiry: datetime | None,
) -> PlatformCredential:
    """Apply a refreshed token; refresh tokens are not always reissued, so keep the old one."""
    return previous.model_copy(
        update={
            "access_token": access_token,
            "refresh_token": refresh_token or previous.refresh_token,
            "expiry": expiry,
            "updated_at": datetime.now(timezone.utc),
        }
    )


class CredentialService:
    """Per-user, per-platform token records kept in a JSON document."""

    _state_lock = Lock()

    @classmethod
    def _state_file_path(cls) -> Path:
        return settings.data_dir / "credentials.json"

    @classmethod
    def _load_state(cls) -> dict[str, Any]:
        path = cls._state_file_path()
        if not path.exists():
            return {}
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            if isinstance(payload, dict):
                return payload
        except Exception:
            logger.exception("Failed to read credential store at %s", path)
            return {}
        return {}

    @classmethod
    def _save_state(cls, payload: dict[str, Any]) -> None:
        path = cls._state_file_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=True), encoding="utf-8")
        tmp_path.replace(path)

    @classmethod
    def get(cls, user_id: str, platform: str) -> PlatformCredential | None:
        with cls._state_lock:
            raw = cls._load_state().get("tokens", {}).get(user_id, {}).get(platform)
        if not isinstance(raw, dict):
            return None
        try:
            return PlatformCredential.model_validate(raw)
        except ValueError:
            logger.warning("Ignoring malformed %s credential for user %s", platform, user_id)
            return None

    @classmethod
    def set(cls, user_id: str, platform: str, credential: PlatformCredential) -> None:
        if platform not in SUPPORTED_PLATFORMS:
            raise ValueError(f"Unsupported platform '{platform}'")
        with cls._state_lock:
            state = cls._load_state()
            tokens = state.setdefault("tokens", {})
            tokens.setdefault(user_id, {})[platform] = credential.model_dump(mode="json")
            cls._save_state(state)

    @classmethod
    def delete(cls, user_id: str, platform: str) -> bool:
        with cls._state_lock:
            state = cls._load_state()
            user_tokens = state.get("tokens", {}).get(user_id, {})
            if platform not in user_tokens:
                return False
            del user_tokens[platform]
            cls._save_state(state)
            return True

    @classmethod
    def connected_platforms(cls, user_id: str) -> dict[str, PlatformCredential]:
        connected: dict[str, PlatformCredential] = {}
        for platform in SUPPORTED_PLATFORMS:
            credential = cls.get(user_id, platform)
            if credential is not None:
                connected[platform] = credential
        return connected
