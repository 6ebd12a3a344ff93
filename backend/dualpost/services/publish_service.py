from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timedelta, timezone
import logging
import time
from typing import Callable

from ..config import settings
from ..errors import DeadlineExceeded, InvalidInput, PlatformNotConnected, PublishError
from ..models import (
    PLATFORM_FACEBOOK,
    PLATFORM_YOUTUBE,
    SUPPORTED_PLATFORMS,
    PlatformCredential,
    PublishRequest,
    PublishResult,
    UploadOutcome,
)
from .credential_service import CredentialService
from .description import derive_description, derive_title
from .facebook_reels_driver import FacebookReelsDriver
from .history_service import HistoryService
from .youtube_driver import YouTubeDriver

logger = logging.getLogger("uvicorn.error")


class PublishService:
    """Publishes one video to every connected platform and reports a per-platform result."""

    @classmethod
    def _now_utc(cls) -> datetime:
        return datetime.now(timezone.utc)

    @classmethod
    def normalize_platforms(cls, platforms: list[str] | tuple[str, ...] | None) -> tuple[str, ...]:
        if platforms is None:
            return SUPPORTED_PLATFORMS
        requested: set[str] = set()
        for platform in platforms:
            key = str(platform).strip().lower()
            if not key:
                continue
            if key not in SUPPORTED_PLATFORMS:
                raise InvalidInput(
                    f"Unsupported platform '{platform}'. "
                    f"Supported values: {', '.join(SUPPORTED_PLATFORMS)}"
                )
            requested.add(key)
        if not requested:
            raise InvalidInput("At least one platform is required when 'platforms' is provided.")
        return tuple(platform for platform in SUPPORTED_PLATFORMS if platform in requested)

    @classmethod
    def credential_for(cls, user_id: str, platform: str) -> PlatformCredential:
        credential = CredentialService.get(user_id, platform)
        if credential is None:
            raise PlatformNotConnected(f"{platform} is not connected", platform=platform)
        return credential

    @classmethod
    def _validate_request(cls, request: PublishRequest) -> None:
        media = request.media
        if media is None or not media.data:
            raise InvalidInput("Video file is required")
        if not media.content_type.startswith("video/"):
            raise InvalidInput(f"Unsupported video content type '{media.content_type}'")
        if media.thumbnail is not None and not media.thumbnail_content_type.startswith("image/"):
            raise InvalidInput(
                f"Unsupported thumbnail content type '{media.thumbnail_content_type}'"
            )
        if not (request.description or "").strip():
            raise InvalidInput("Description is required")

    @classmethod
    def _scheduled_utc(cls, scheduled_at: datetime | None) -> datetime | None:
        if scheduled_at is None:
            return None
        if scheduled_at.tzinfo is None:
            return scheduled_at.replace(tzinfo=timezone.utc)
        return scheduled_at.astimezone(timezone.utc)

    @classmethod
    def validate_schedule(cls, scheduled_at: datetime, platforms: tuple[str, ...]) -> None:
        """Client clocks are untrusted: enforce each platform's lead time here."""
        now_utc = cls._now_utc()
        for platform in platforms:
            lead = settings.min_schedule_lead_minutes(platform)
            if scheduled_at <= now_utc + timedelta(minutes=lead):
                raise InvalidInput(
                    f"Scheduled time must be more than {lead} minutes in the future for {platform} "
                    f"(scheduled={scheduled_at.isoformat()}, now={now_utc.isoformat()})."
                )
            if platform == PLATFORM_FACEBOOK:
                horizon = now_utc + timedelta(days=settings.facebook_max_schedule_days)
                if scheduled_at > horizon:
                    raise InvalidInput(
                        f"Facebook scheduled time must be within {settings.facebook_max_schedule_days} days "
                        f"(scheduled={scheduled_at.isoformat()}, now={now_utc.isoformat()})."
                    )

    @classmethod
    def _platform_text(cls, platform: str, request: PublishRequest) -> str:
        base_text = request.description_overrides.get(platform) or request.description
        return derive_description(platform, base_text)

    @classmethod
    def _youtube_job(
        cls,
        *,
        user_id: str,
        credential: PlatformCredential,
        request: PublishRequest,
        scheduled_at: datetime | None,
    ) -> Callable[[], UploadOutcome]:
        def _run() -> UploadOutcome:
            upload = YouTubeDriver.upload(
                user_id=user_id,
                credential=credential,
                media=request.media,
                title=derive_title(request.description),
                description=cls._platform_text(PLATFORM_YOUTUBE, request),
                scheduled_at=scheduled_at,
            )
            return UploadOutcome(
                platform=PLATFORM_YOUTUBE,
                status="success",
                url=upload.url,
                video_id=upload.video_id,
                scheduled=upload.scheduled,
            )

        return _run

    @classmethod
    def _facebook_job(
        cls,
        *,
        credential: PlatformCredential,
        request: PublishRequest,
        scheduled_at: datetime | None,
        deadline: float,
    ) -> Callable[[], UploadOutcome]:
        def _run() -> UploadOutcome:
            upload = FacebookReelsDriver.upload(
                credential=credential,
                media=request.media,
                description=cls._platform_text(PLATFORM_FACEBOOK, request),
                scheduled_at=scheduled_at,
                deadline=deadline,
            )
            return UploadOutcome(
                platform=PLATFORM_FACEBOOK,
                status="success",
                url=upload.url,
                video_id=upload.video_id,
                scheduled=upload.scheduled,
            )

        return _run

    @classmethod
    def _error_outcome(cls, platform: str, exc: Exception) -> UploadOutcome:
        if isinstance(exc, PublishError):
            return UploadOutcome(platform=platform, status="error", message=exc.message, code=exc.code)
        return UploadOutcome(
            platform=platform,
            status="error",
            message=str(exc) or exc.__class__.__name__,
            code="unexpected_error",
        )

    @classmethod
    def _watch_late_job(
        cls,
        platform: str,
        future: Future,
        on_late: Callable[[str, UploadOutcome], None] | None,
    ) -> None:
        """Report the outcome of a job that finishes after its deadline outcome was returned."""

        def _done(finished: Future) -> None:
            if finished.cancelled():
                return
            try:
                outcome = finished.result()
            except Exception as exc:
                outcome = cls._error_outcome(platform, exc)
            logger.warning(
                "Late %s outcome after publish deadline: status=%s url=%s message=%s",
                platform,
                outcome.status,
                outcome.url,
                outcome.message,
            )
            if on_late is None:
                return
            try:
                on_late(platform, outcome)
            except Exception:
                logger.exception("Failed to report late %s outcome", platform)

        future.add_done_callback(_done)

    @classmethod
    def _run_jobs(
        cls,
        jobs: dict[str, Callable[[], UploadOutcome]],
        deadline: float,
        on_late: Callable[[str, UploadOutcome], None] | None = None,
    ) -> dict[str, UploadOutcome]:
        outcomes: dict[str, UploadOutcome] = {}
        if not jobs:
            return outcomes
        max_parallel = max(1, min(settings.publish_max_parallel, len(jobs)))
        executor = ThreadPoolExecutor(max_workers=max_parallel, thread_name_prefix="publish")
        try:
            future_to_platform = {executor.submit(job): platform for platform, job in jobs.items()}
            remaining = max(0.0, deadline - time.monotonic())
            done, not_done = wait(future_to_platform, timeout=remaining)
            for future in done:
                platform = future_to_platform[future]
                try:
                    outcomes[platform] = future.result()
                except Exception as exc:
                    if not isinstance(exc, PublishError):
                        logger.exception("Unexpected %s upload failure", platform)
                    outcomes[platform] = cls._error_outcome(platform, exc)
            for future in not_done:
                platform = future_to_platform[future]
                # A running upload cannot be stopped; its real result arrives later.
                cls._watch_late_job(platform, future, on_late)
                future.cancel()
                outcomes[platform] = cls._error_outcome(
                    platform,
                    DeadlineExceeded(
                        f"{platform} upload did not complete within "
                        f"{settings.publish_deadline_seconds:.0f}s",
                        platform=platform,
                    ),
                )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return outcomes

    @classmethod
    def _report(cls, user_id: str, request: PublishRequest, result: PublishResult) -> None:
        try:
            entry = HistoryService.build_entry(title=derive_title(request.description), result=result)
            HistoryService.record(user_id, entry)
        except Exception:
            logger.exception("Failed to record publish history for user %s", user_id)

    @classmethod
    def publish(cls, user_id: str, request: PublishRequest) -> PublishResult:
        cls._validate_request(request)
        requested = cls.normalize_platforms(request.platforms)
        scheduled_at = cls._scheduled_utc(request.scheduled_at)

        credentials: dict[str, PlatformCredential] = {}
        for platform in requested:
            try:
                credentials[platform] = cls.credential_for(user_id, platform)
            except PlatformNotConnected as exc:
                logger.info("Skipping %s for user %s: %s", platform, user_id, exc.message)
        targets = tuple(platform for platform in requested if platform in credentials)

        if scheduled_at is not None:
            cls.validate_schedule(scheduled_at, targets)

        deadline = time.monotonic() + settings.publish_deadline_seconds
        jobs: dict[str, Callable[[], UploadOutcome]] = {}
        if PLATFORM_YOUTUBE in credentials:
            jobs[PLATFORM_YOUTUBE] = cls._youtube_job(
                user_id=user_id,
                credential=credentials[PLATFORM_YOUTUBE],
                request=request,
                scheduled_at=scheduled_at,
            )
        if PLATFORM_FACEBOOK in credentials:
            jobs[PLATFORM_FACEBOOK] = cls._facebook_job(
                credential=credentials[PLATFORM_FACEBOOK],
                request=request,
                scheduled_at=scheduled_at,
                deadline=deadline,
            )

        def _report_late(platform: str, outcome: UploadOutcome) -> None:
            cls._report(user_id, request, PublishResult(outcomes=[outcome], scheduled_at=scheduled_at))

        outcomes_by_platform = cls._run_jobs(jobs, deadline, on_late=_report_late)
        # Keep deterministic ordering in results and history.
        result = PublishResult(
            outcomes=[outcomes_by_platform[platform] for platform in targets if platform in outcomes_by_platform],
            scheduled_at=scheduled_at,
        )
        for outcome in result.outcomes:
            logger.info(
                "Publish outcome user=%s platform=%s status=%s url=%s message=%s",
                user_id,
                outcome.platform,
                outcome.status,
                outcome.url,
                outcome.message,
            )
        if result.outcomes:
            cls._report(user_id, request, result)
        return result
