from __future__ import annotations

import pytest

from dualpost.config import settings
from dualpost.models import MediaAsset, PlatformCredential


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "data_dir", tmp_path)
    monkeypatch.setattr(settings, "facebook_poll_interval_seconds", 0)
    monkeypatch.setattr(settings, "http_retry_base_delay_seconds", 0)
    monkeypatch.setattr(settings, "google_client_id", "client-id")
    monkeypatch.setattr(settings, "google_client_secret", "client-secret")
    monkeypatch.setattr(settings, "facebook_strict_thumbnail", False)
    monkeypatch.setattr(settings, "firebase_project_id", None)
    return settings


@pytest.fixture
def video_asset() -> MediaAsset:
    return MediaAsset(data=b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 64, content_type="video/mp4")


@pytest.fixture
def video_with_thumbnail() -> MediaAsset:
    return MediaAsset(
        data=b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 64,
        content_type="video/mp4",
        thumbnail=b"\xff\xd8\xff\xe0thumb",
        thumbnail_content_type="image/jpeg",
    )


@pytest.fixture
def facebook_credential() -> PlatformCredential:
    return PlatformCredential(access_token="page-token", account_id="PAGE1", account_name="My Page")


@pytest.fixture
def youtube_credential() -> PlatformCredential:
    return PlatformCredential(access_token="yt-access", refresh_token="yt-refresh")
