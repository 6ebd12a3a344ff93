from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path

from .models.publish import PLATFORM_YOUTUBE


PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_ROOT = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="DUALPOST_",
        env_file=(PROJECT_ROOT / ".env", BACKEND_ROOT / ".env"),
        env_file_encoding="utf-8",
    )

    # Paths
    data_dir: Path = Path(__file__).parent.parent / "data"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Caller identity (Firebase ID tokens)
    firebase_project_id: str | None = None

    # Google OAuth client used to refresh per-user YouTube tokens
    google_client_id: str | None = None
    google_client_secret: str | None = None
    google_token_uri: str = "https://oauth2.googleapis.com/token"

    # YouTube upload defaults
    youtube_category_id: str = "22"
    youtube_title_max_length: int = 100
    youtube_hashtags: str = "#viralvideo #shorts"
    youtube_public_url_template: str = "https://www.youtube.com/shorts/{video_id}"
    youtube_min_schedule_lead_minutes: int = 10

    # Meta Graph API (Facebook Page Reels)
    meta_graph_base_url: str = "https://graph.facebook.com"
    meta_graph_api_version: str = "v19.0"
    facebook_hashtags: str = "#reels #viralvideo"
    facebook_public_url_template: str = "https://www.facebook.com/reel/{video_id}"
    facebook_min_schedule_lead_minutes: int = 15
    facebook_max_schedule_days: int = 29
    facebook_poll_interval_seconds: float = 5.0
    facebook_poll_attempts: int = 24
    # Treat a failed thumbnail staging as fatal instead of publishing without it
    facebook_strict_thumbnail: bool = False

    # HTTP transport
    http_max_attempts: int = 3
    http_retry_base_delay_seconds: float = 1.0
    http_timeout_seconds: float = 60.0
    http_transfer_timeout_seconds: float = 1800.0

    # Orchestration
    publish_max_parallel: int = 2
    publish_deadline_seconds: float = 15 * 60
    history_limit: int = 100

    @property
    def meta_graph_base(self) -> str:
        return f"{self.meta_graph_base_url.rstrip('/')}/{self.meta_graph_api_version}"

    def hashtags_for(self, platform: str) -> list[str]:
        raw = self.youtube_hashtags if platform == PLATFORM_YOUTUBE else self.facebook_hashtags
        return [tag for tag in raw.split() if tag]

    def min_schedule_lead_minutes(self, platform: str) -> int:
        if platform == PLATFORM_YOUTUBE:
            return self.youtube_min_schedule_lead_minutes
        return self.facebook_min_schedule_lead_minutes


settings = Settings()

# Ensure directories exist
settings.data_dir.mkdir(parents=True, exist_ok=True)
