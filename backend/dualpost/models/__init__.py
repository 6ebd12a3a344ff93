from .credential import PlatformCredential
from .history import HistoryEntry
from .publish import (
    PLATFORM_FACEBOOK,
    PLATFORM_YOUTUBE,
    SUPPORTED_PLATFORMS,
    MediaAsset,
    PlatformName,
    PublishRequest,
    PublishResult,
    UploadOutcome,
)

__all__ = [
    "PlatformCredential", "HistoryEntry",
    "PLATFORM_FACEBOOK", "PLATFORM_YOUTUBE", "SUPPORTED_PLATFORMS",
    "MediaAsset", "PlatformName", "PublishRequest", "PublishResult", "UploadOutcome",
]
