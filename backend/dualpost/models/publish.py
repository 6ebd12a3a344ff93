from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Literal

PLATFORM_YOUTUBE = "youtube"
PLATFORM_FACEBOOK = "facebook"
# Result ordering follows this tuple.
SUPPORTED_PLATFORMS = (PLATFORM_YOUTUBE, PLATFORM_FACEBOOK)

PlatformName = Literal["youtube", "facebook"]


@dataclass(frozen=True)
class MediaAsset:
    data: bytes
    content_type: str = "video/mp4"
    filename: str | None = None
    thumbnail: bytes | None = None
    thumbnail_content_type: str = "image/jpeg"

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def has_thumbnail(self) -> bool:
        return bool(self.thumbnail)


@dataclass(frozen=True)
class PublishRequest:
    media: MediaAsset | None
    description: str
    scheduled_at: datetime | None = None
    # None means every connected platform.
    platforms: tuple[str, ...] | None = None
    description_overrides: dict[str, str] = field(default_factory=dict)


@dataclass
class UploadOutcome:
    platform: str
    status: str  # success | error
    url: str | None = None
    message: str | None = None
    video_id: str | None = None
    code: str | None = None
    scheduled: bool = False


@dataclass
class PublishResult:
    outcomes: list[UploadOutcome] = field(default_factory=list)
    scheduled_at: datetime | None = None

    @property
    def status(self) -> str:
        if not self.outcomes:
            return "success"
        succeeded = [item for item in self.outcomes if item.status == "success"]
        if not succeeded:
            return "error"
        if len(succeeded) < len(self.outcomes):
            return "partial"
        return "scheduled" if self.scheduled_at else "success"

    def to_payload(self) -> dict[str, Any]:
        return {
            "results": [asdict(item) for item in self.outcomes],
            "status": self.status,
            "scheduled_at": self.scheduled_at.isoformat() if self.scheduled_at else None,
        }
