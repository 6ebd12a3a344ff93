from .auth_service import AuthService
from .credential_service import CredentialService, merge_rotated_credential
from .description import derive_description, derive_title
from .facebook_reels_driver import FacebookReelsDriver, ReelUpload, RemoteVideoHandle
from .history_service import HistoryService
from .publish_service import PublishService
from .youtube_driver import ShortVideoUpload, YouTubeDriver

__all__ = [
    "AuthService",
    "CredentialService", "merge_rotated_credential",
    "derive_description", "derive_title",
    "FacebookReelsDriver", "ReelUpload", "RemoteVideoHandle",
    "HistoryService",
    "PublishService",
    "YouTubeDriver", "ShortVideoUpload",
]
