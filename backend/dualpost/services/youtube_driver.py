from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import io
import logging
from typing import Any

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from ..config import settings
from ..errors import AuthExpired, InvalidInput, RemoteRejected
from ..models import PLATFORM_YOUTUBE, MediaAsset, PlatformCredential
from ..utils.google_api import extract_http_error_detail, is_auth_error, is_quota_error
from .credential_service import CredentialService, merge_rotated_credential

logger = logging.getLogger("uvicorn.error")


@dataclass
class ShortVideoUpload:
    video_id: str
    url: str
    scheduled: bool = False
    thumbnail_set: bool = False
    rotated_credential: PlatformCredential | None = None


def _to_naive_utc(value: datetime | None) -> datetime | None:
    # google-auth compares expiry against a naive UTC clock.
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _to_aware_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class YouTubeDriver:
    """Single-call Shorts upload with native scheduling and a best-effort thumbnail."""

    @classmethod
    def public_url(cls, video_id: str) -> str:
        return settings.youtube_public_url_template.format(video_id=video_id)

    @classmethod
    def _google_credentials(cls, credential: PlatformCredential) -> Credentials:
        return Credentials(
            token=credential.access_token,
            refresh_token=credential.refresh_token,
            token_uri=settings.google_token_uri,
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            scopes=credential.scopes or None,
            expiry=_to_naive_utc(credential.expiry),
        )

    @classmethod
    def _refresh_if_needed(cls, creds: Credentials) -> None:
        if creds.valid:
            return
        if not creds.refresh_token:
            raise AuthExpired(
                "YouTube access token expired and no refresh token is stored. Reconnect YouTube.",
                platform=PLATFORM_YOUTUBE,
            )
        try:
            creds.refresh(Request())
        except RefreshError as exc:
            raise AuthExpired(
                f"YouTube token refresh was rejected: {exc}",
                platform=PLATFORM_YOUTUBE,
            ) from exc

    @classmethod
    def _build_client(cls, creds: Credentials) -> Any:
        return build("youtube", "v3", credentials=creds, cache_discovery=False)

    @classmethod
    def _rotated_credential(
        cls,
        previous: PlatformCredential,
        creds: Credentials,
    ) -> PlatformCredential | None:
        if not creds.token or creds.token == previous.access_token:
            return None
        return merge_rotated_credential(
            previous,
            access_token=str(creds.token),
            refresh_token=creds.refresh_token,
            expiry=_to_aware_utc(creds.expiry),
        )

    @classmethod
    def _persist_rotation(
        cls,
        user_id: str,
        rotated: PlatformCredential | None,
    ) -> None:
        if rotated is None:
            return
        try:
            CredentialService.set(user_id, PLATFORM_YOUTUBE, rotated)
            logger.info("YouTube token for user %s was refreshed and saved", user_id)
        except Exception:
            logger.exception("Failed to persist refreshed YouTube token for user %s", user_id)

    @classmethod
    def _set_thumbnail(cls, youtube: Any, *, video_id: str, media: MediaAsset) -> bool:
        try:
            youtube.thumbnails().set(
                videoId=video_id,
                media_body=MediaIoBaseUpload(
                    io.BytesIO(media.thumbnail or b""),
                    mimetype=media.thumbnail_content_type,
                    resumable=False,
                ),
            ).execute()
            return True
        except HttpError as exc:
            logger.warning(
                "YouTube thumbnail upload failed for video_id=%s: %s",
                video_id,
                extract_http_error_detail(exc),
            )
        except Exception:
            logger.exception("YouTube thumbnail upload failed for video_id=%s", video_id)
        return False

    @classmethod
    def upload(
        cls,
        *,
        user_id: str,
        credential: PlatformCredential,
        media: MediaAsset | None,
        title: str,
        description: str,
        scheduled_at: datetime | None = None,
    ) -> ShortVideoUpload:
        if media is None or not media.data:
            raise InvalidInput("Video file is required", platform=PLATFORM_YOUTUBE)

        creds = cls._google_credentials(credential)
        rotated: PlatformCredential | None = None
        try:
            cls._refresh_if_needed(creds)
            youtube = cls._build_client(creds)

            status_body: dict[str, Any] = {
                "privacyStatus": "private" if scheduled_at else "public",
                "selfDeclaredMadeForKids": False,
            }
            if scheduled_at:
                status_body["publishAt"] = _to_aware_utc(scheduled_at).isoformat()

            response = youtube.videos().insert(
                part="snippet,status",
                body={
                    "snippet": {
                        "title": title,
                        "description": description,
                        "categoryId": settings.youtube_category_id,
                    },
                    "status": status_body,
                },
                media_body=MediaIoBaseUpload(
                    io.BytesIO(media.data),
                    mimetype=media.content_type,
                    chunksize=-1,
                    resumable=True,
                ),
            ).execute()
            video_id = (response or {}).get("id")
            if not video_id:
                raise RemoteRejected(
                    f"YouTube upload returned no video id: {response}",
                    platform=PLATFORM_YOUTUBE,
                )

            thumbnail_set = False
            if media.has_thumbnail:
                thumbnail_set = cls._set_thumbnail(youtube, video_id=str(video_id), media=media)

            rotated = cls._rotated_credential(credential, creds)
            return ShortVideoUpload(
                video_id=str(video_id),
                url=cls.public_url(str(video_id)),
                scheduled=scheduled_at is not None,
                thumbnail_set=thumbnail_set,
                rotated_credential=rotated,
            )
        except HttpError as exc:
            detail = extract_http_error_detail(exc)
            if is_auth_error(exc):
                raise AuthExpired(
                    f"YouTube rejected the stored credential: {detail}",
                    platform=PLATFORM_YOUTUBE,
                ) from exc
            raise RemoteRejected(
                detail,
                platform=PLATFORM_YOUTUBE,
                details={"quota_exceeded": True} if is_quota_error(exc) else None,
                status_code=getattr(exc.resp, "status", None),
            ) from exc
        except RefreshError as exc:
            raise AuthExpired(
                f"YouTube token refresh was rejected: {exc}",
                platform=PLATFORM_YOUTUBE,
            ) from exc
        finally:
            # A refresh may have happened even if the upload failed afterwards.
            if rotated is None:
                rotated = cls._rotated_credential(credential, creds)
            cls._persist_rotation(user_id, rotated)
