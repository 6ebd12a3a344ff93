from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator


class PlatformCredential(BaseModel):
    """Token material for one (user, platform) pair."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str | None = None
    expiry: datetime | None = None
    scopes: list[str] = []
    # Facebook Page id for Reels uploads; channel id for YouTube when known.
    account_id: str | None = None
    account_name: str | None = None
    updated_at: datetime | None = None

    @field_validator("access_token")
    @classmethod
    def validate_access_token(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("access_token cannot be empty")
        return value.strip()
