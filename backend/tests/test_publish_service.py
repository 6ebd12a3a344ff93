"""Orchestration tests: ordering, partial success, scheduling rules, and reporting."""
import logging
import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from dualpost.config import settings
from dualpost.errors import AuthExpired, InvalidInput, PlatformNotConnected
from dualpost.models import MediaAsset, PlatformCredential, PublishRequest
from dualpost.services import facebook_reels_driver
from dualpost.services.credential_service import CredentialService
from dualpost.services.history_service import HistoryService
from dualpost.services.publish_service import PublishService
from dualpost.services.youtube_driver import ShortVideoUpload, YouTubeDriver

from fakes import FakeResponse, FakeSession, reel_session, status_response

USER = "user-1"


class FakeYouTube:
    """Records upload calls and answers with a canned result or error."""

    def __init__(self, result=None, error: Exception | None = None):
        self.calls: list[dict] = []
        self.result = result or ShortVideoUpload(video_id="yt1", url="https://www.youtube.com/shorts/yt1")
        self.error = error

    def __call__(self, cls, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def fake_youtube(monkeypatch):
    fake = FakeYouTube()
    monkeypatch.setattr(YouTubeDriver, "upload", classmethod(fake))
    return fake


@pytest.fixture
def graph_session(monkeypatch):
    """Routes every requests.Session the Reels driver opens to one scripted session."""
    holder: dict[str, FakeSession] = {"session": reel_session()}
    monkeypatch.setattr(facebook_reels_driver.requests, "Session", lambda: holder["session"])
    return holder


@pytest.fixture
def connect_both(youtube_credential, facebook_credential):
    CredentialService.set(USER, "youtube", youtube_credential)
    CredentialService.set(USER, "facebook", facebook_credential)


def _request(media: MediaAsset, **kwargs) -> PublishRequest:
    kwargs.setdefault("description", "Hello")
    return PublishRequest(media=media, **kwargs)


def _in_minutes(minutes: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


class TestOutcomes:
    def test_no_connections_returns_empty_success(self, fake_youtube, graph_session, video_asset):
        result = PublishService.publish(USER, _request(video_asset))

        assert result.outcomes == []
        assert result.status == "success"
        assert fake_youtube.calls == []
        assert graph_session["session"].calls == []
        assert HistoryService.list_entries(USER) == []

    @pytest.mark.usefixtures("connect_both")
    def test_both_platforms_succeed_in_fixed_order(self, fake_youtube, graph_session, video_asset):
        result = PublishService.publish(USER, _request(video_asset))

        assert [item.platform for item in result.outcomes] == ["youtube", "facebook"]
        assert [item.status for item in result.outcomes] == ["success", "success"]
        assert result.outcomes[0].url == "https://www.youtube.com/shorts/yt1"
        assert result.outcomes[1].url == "https://www.facebook.com/reel/VID1"
        assert result.status == "success"

    @pytest.mark.usefixtures("connect_both")
    def test_facebook_start_failure_is_partial_success(self, fake_youtube, graph_session, video_asset):
        session = FakeSession().on(
            "POST", "/video_reels", FakeResponse(500, {"error": {"message": "Service unavailable"}}), phase="start"
        )
        graph_session["session"] = session

        result = PublishService.publish(USER, _request(video_asset))

        youtube, facebook = result.outcomes
        assert youtube.platform == "youtube"
        assert youtube.status == "success"
        assert facebook.platform == "facebook"
        assert facebook.status == "error"
        assert facebook.code == "remote_rejected"
        assert "Service unavailable" in facebook.message
        assert result.status == "partial"
        assert session.calls_for("DELETE") == []

    @pytest.mark.usefixtures("connect_both")
    def test_all_failures_report_error_status(self, monkeypatch, graph_session, video_asset):
        monkeypatch.setattr(
            YouTubeDriver,
            "upload",
            classmethod(FakeYouTube(error=AuthExpired("Reconnect YouTube", platform="youtube"))),
        )
        graph_session["session"] = FakeSession().on(
            "POST", "/video_reels", FakeResponse(400, {"error": {"message": "Bad page", "code": 100}}), phase="start"
        )

        result = PublishService.publish(USER, _request(video_asset))

        assert result.status == "error"
        assert [item.code for item in result.outcomes] == ["auth_expired", "remote_rejected"]

    def test_unexpected_driver_exception_becomes_error_outcome(self, monkeypatch, youtube_credential, video_asset):
        CredentialService.set(USER, "youtube", youtube_credential)
        monkeypatch.setattr(YouTubeDriver, "upload", classmethod(FakeYouTube(error=RuntimeError("boom"))))

        result = PublishService.publish(USER, _request(video_asset))

        (outcome,) = result.outcomes
        assert outcome.status == "error"
        assert outcome.code == "unexpected_error"
        assert outcome.message == "boom"

    @pytest.mark.usefixtures("connect_both")
    def test_reel_poll_timeout_is_that_platforms_error(self, fake_youtube, graph_session, video_asset):
        session = reel_session(poll_responses=[status_response("processing")])
        graph_session["session"] = session

        result = PublishService.publish(USER, _request(video_asset))

        youtube, facebook = result.outcomes
        assert youtube.status == "success"
        assert facebook.status == "error"
        assert facebook.code == "poll_timeout"
        assert len(session.calls_for("GET", "/VID1")) == settings.facebook_poll_attempts
        assert len(session.calls_for("DELETE", "/VID1")) == 1
        assert result.status == "partial"

    def test_only_connected_platforms_are_attempted(self, fake_youtube, graph_session, facebook_credential, video_asset):
        CredentialService.set(USER, "facebook", facebook_credential)

        result = PublishService.publish(USER, _request(video_asset))

        assert [item.platform for item in result.outcomes] == ["facebook"]
        assert fake_youtube.calls == []

    def test_missing_credential_raises_platform_not_connected(self, facebook_credential):
        CredentialService.set(USER, "facebook", facebook_credential)

        assert PublishService.credential_for(USER, "facebook") == facebook_credential
        with pytest.raises(PlatformNotConnected) as exc_info:
            PublishService.credential_for(USER, "youtube")

        assert exc_info.value.code == "platform_not_connected"
        assert exc_info.value.platform == "youtube"

    @pytest.mark.usefixtures("connect_both")
    def test_platform_subset_limits_targets(self, fake_youtube, graph_session, video_asset):
        result = PublishService.publish(USER, _request(video_asset, platforms=("facebook",)))

        assert [item.platform for item in result.outcomes] == ["facebook"]
        assert fake_youtube.calls == []


class TestDescriptions:
    @pytest.mark.usefixtures("connect_both")
    def test_each_platform_gets_its_own_hashtags(self, fake_youtube, graph_session, video_asset):
        PublishService.publish(USER, _request(video_asset, description="Hello #shorts"))

        (youtube_call,) = fake_youtube.calls
        assert youtube_call["title"] == "Hello #shorts"
        assert youtube_call["description"] == "Hello #shorts #viralvideo"
        (finish,) = graph_session["session"].calls_for("POST", "/video_reels", phase="finish")
        assert finish.kwargs["data"]["description"] == "Hello #shorts #reels #viralvideo"

    @pytest.mark.usefixtures("connect_both")
    def test_configured_hashtags_are_used(self, monkeypatch, fake_youtube, graph_session, video_asset):
        monkeypatch.setattr(settings, "youtube_hashtags", "#x #y")

        PublishService.publish(USER, _request(video_asset, platforms=("youtube",)))

        assert fake_youtube.calls[0]["description"] == "Hello #x #y"

    @pytest.mark.usefixtures("connect_both")
    def test_per_platform_override(self, fake_youtube, graph_session, video_asset):
        PublishService.publish(
            USER,
            _request(video_asset, description_overrides={"facebook": "Page caption"}),
        )

        assert fake_youtube.calls[0]["description"] == "Hello #viralvideo #shorts"
        (finish,) = graph_session["session"].calls_for("POST", "/video_reels", phase="finish")
        assert finish.kwargs["data"]["description"] == "Page caption #reels #viralvideo"


class TestValidation:
    def test_missing_video_is_rejected(self, fake_youtube):
        with pytest.raises(InvalidInput):
            PublishService.publish(USER, PublishRequest(media=None, description="Hello"))

    def test_blank_description_is_rejected(self, fake_youtube, video_asset):
        with pytest.raises(InvalidInput):
            PublishService.publish(USER, _request(video_asset, description="   "))

    def test_non_video_upload_is_rejected(self, fake_youtube):
        media = MediaAsset(data=b"GIF89a", content_type="image/gif")

        with pytest.raises(InvalidInput):
            PublishService.publish(USER, _request(media))

    def test_unsupported_platform_is_rejected(self, fake_youtube, video_asset):
        with pytest.raises(InvalidInput) as exc_info:
            PublishService.publish(USER, _request(video_asset, platforms=("tiktok",)))

        assert "tiktok" in exc_info.value.message

    def test_platforms_are_normalized_and_ordered(self):
        assert PublishService.normalize_platforms([" Facebook", "youtube", "facebook"]) == ("youtube", "facebook")
        assert PublishService.normalize_platforms(None) == ("youtube", "facebook")


class TestScheduling:
    @pytest.mark.usefixtures("connect_both")
    def test_schedule_inside_facebook_lead_is_rejected_before_upload(self, fake_youtube, graph_session, video_asset):
        with pytest.raises(InvalidInput) as exc_info:
            PublishService.publish(USER, _request(video_asset, scheduled_at=_in_minutes(12)))

        assert "facebook" in exc_info.value.message
        assert fake_youtube.calls == []
        assert graph_session["session"].calls == []

    def test_schedule_inside_youtube_lead_is_rejected_before_upload(self, fake_youtube, youtube_credential, video_asset):
        CredentialService.set(USER, "youtube", youtube_credential)

        with pytest.raises(InvalidInput) as exc_info:
            PublishService.publish(USER, _request(video_asset, scheduled_at=_in_minutes(9)))

        assert "youtube" in exc_info.value.message
        assert fake_youtube.calls == []
        assert HistoryService.list_entries(USER) == []

    def test_youtube_only_accepts_shorter_lead(self, fake_youtube, youtube_credential, video_asset):
        CredentialService.set(USER, "youtube", youtube_credential)

        result = PublishService.publish(USER, _request(video_asset, scheduled_at=_in_minutes(12)))

        assert result.outcomes[0].status == "success"
        assert fake_youtube.calls[0]["scheduled_at"] is not None

    @pytest.mark.usefixtures("connect_both")
    def test_facebook_horizon_is_enforced(self, fake_youtube, graph_session, video_asset):
        with pytest.raises(InvalidInput):
            PublishService.publish(
                USER,
                _request(video_asset, scheduled_at=datetime.now(timezone.utc) + timedelta(days=30)),
            )

    @pytest.mark.usefixtures("connect_both")
    def test_scheduled_publish_reports_scheduled_status(self, fake_youtube, graph_session, video_asset):
        scheduled_at = _in_minutes(60)

        result = PublishService.publish(USER, _request(video_asset, scheduled_at=scheduled_at))

        assert result.status == "scheduled"
        assert result.to_payload()["scheduled_at"] == scheduled_at.isoformat()
        (finish,) = graph_session["session"].calls_for("POST", "/video_reels", phase="finish")
        assert finish.kwargs["data"]["video_state"] == "SCHEDULED"
        assert finish.kwargs["data"]["scheduled_publish_time"] == str(int(scheduled_at.timestamp()))

    def test_naive_schedule_is_treated_as_utc(self, fake_youtube, youtube_credential, video_asset):
        CredentialService.set(USER, "youtube", youtube_credential)
        naive = (datetime.now(timezone.utc) + timedelta(hours=2)).replace(tzinfo=None)

        PublishService.publish(USER, _request(video_asset, scheduled_at=naive))

        assert fake_youtube.calls[0]["scheduled_at"] == naive.replace(tzinfo=timezone.utc)


class TestReporting:
    @pytest.mark.usefixtures("connect_both")
    def test_history_records_partial_result(self, fake_youtube, graph_session, video_asset):
        graph_session["session"] = FakeSession().on(
            "POST", "/video_reels", FakeResponse(500, {"error": {"message": "down"}}), phase="start"
        )

        PublishService.publish(USER, _request(video_asset))

        (entry,) = HistoryService.list_entries(USER)
        assert entry.status == "partial"
        assert entry.title == "Hello"
        assert [item.platform for item in entry.outcomes] == ["youtube", "facebook"]

    @pytest.mark.usefixtures("connect_both")
    def test_reporting_failure_does_not_change_result(self, monkeypatch, fake_youtube, graph_session, video_asset):
        def _broken_record(cls, user_id, entry):
            raise OSError("disk full")

        monkeypatch.setattr(HistoryService, "record", classmethod(_broken_record))

        result = PublishService.publish(USER, _request(video_asset))

        assert result.status == "success"
        assert len(result.outcomes) == 2


def _wait_for_history(count: int, timeout: float = 5.0) -> list:
    stop_at = time.monotonic() + timeout
    while True:
        entries = HistoryService.list_entries(USER)
        if len(entries) >= count or time.monotonic() >= stop_at:
            return entries
        time.sleep(0.01)


class TestDeadline:
    @pytest.fixture
    def slow_youtube(self, monkeypatch, youtube_credential):
        CredentialService.set(USER, "youtube", youtube_credential)
        release = threading.Event()

        def _slow_upload(cls, **kwargs):
            release.wait(5)
            return ShortVideoUpload(video_id="late", url="https://www.youtube.com/shorts/late")

        monkeypatch.setattr(YouTubeDriver, "upload", classmethod(_slow_upload))
        monkeypatch.setattr(settings, "publish_deadline_seconds", 0.05)
        yield release
        # Let the worker finish while settings still point at tmp_path.
        release.set()
        _wait_for_history(2)

    def test_slow_platform_is_reported_as_deadline_exceeded(self, slow_youtube, video_asset):
        try:
            result = PublishService.publish(USER, _request(video_asset))
        finally:
            slow_youtube.set()

        (outcome,) = result.outcomes
        assert outcome.status == "error"
        assert outcome.code == "deadline_exceeded"

    def test_late_result_is_logged_and_recorded(self, slow_youtube, caplog, video_asset):
        caplog.set_level(logging.WARNING, logger="uvicorn.error")

        try:
            PublishService.publish(USER, _request(video_asset))
        finally:
            slow_youtube.set()
        entries = _wait_for_history(2)

        late, on_time = entries
        assert on_time.status == "error"
        assert on_time.outcomes[0].code == "deadline_exceeded"
        assert late.status == "success"
        assert late.outcomes[0].url == "https://www.youtube.com/shorts/late"
        assert any(
            "Late youtube outcome" in record.getMessage()
            and "https://www.youtube.com/shorts/late" in record.getMessage()
            for record in caplog.records
        )


def test_credentials_are_loaded_per_user(fake_youtube, video_asset):
    CredentialService.set("someone-else", "youtube", PlatformCredential(access_token="other"))

    result = PublishService.publish(USER, _request(video_asset))

    assert result.outcomes == []
