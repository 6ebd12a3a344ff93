"""Publish route: one upload fanned out to every connected platform."""

import asyncio
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from ...errors import InvalidInput, PublishError
from ...models import MediaAsset, PublishRequest
from ...services import PublishService
from ..deps import current_user_id


router = APIRouter(prefix="/publish", tags=["publish"])


def _parse_publish_at(value: str | None) -> datetime | None:
    if not value:
        return None
    candidate = value.strip()
    if not candidate:
        return None
    if candidate.endswith("Z"):
        candidate = f"{candidate[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        raise InvalidInput(f"publishAt is not a valid ISO-8601 timestamp: {value}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def _parse_platforms(value: str | None) -> tuple[str, ...] | None:
    if value is None or not value.strip():
        return None
    return tuple(item.strip() for item in value.split(",") if item.strip())


@router.post("")
async def publish_video(
    video: UploadFile | None = File(default=None),
    thumbnail: UploadFile | None = File(default=None),
    description: str = Form(default=""),
    schedulePost: str | None = Form(default=None),
    publishAt: str | None = Form(default=None),
    platforms: str | None = Form(default=None),
    user_id: str = Depends(current_user_id),
):
    """Upload a video to the caller's connected platforms, optionally scheduled."""
    try:
        scheduled_at = None
        if _parse_bool(schedulePost):
            scheduled_at = _parse_publish_at(publishAt)
            if scheduled_at is None:
                raise InvalidInput("publishAt is required when schedulePost is true")

        media = None
        if video is not None:
            video_bytes = await video.read()
            thumbnail_bytes = await thumbnail.read() if thumbnail is not None else None
            media = MediaAsset(
                data=video_bytes,
                content_type=video.content_type or "video/mp4",
                filename=video.filename,
                thumbnail=thumbnail_bytes or None,
                thumbnail_content_type=(thumbnail.content_type if thumbnail is not None else None) or "image/jpeg",
            )

        request = PublishRequest(
            media=media,
            description=description,
            scheduled_at=scheduled_at,
            platforms=_parse_platforms(platforms),
        )
        result = await asyncio.to_thread(PublishService.publish, user_id, request)
    except InvalidInput as exc:
        raise HTTPException(status_code=400, detail=exc.message)
    except PublishError as exc:
        raise HTTPException(status_code=500, detail=exc.message)
    return result.to_payload()
