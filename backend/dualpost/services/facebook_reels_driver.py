from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import time
from typing import Any

import requests

from ..config import settings
from ..errors import (
    AuthExpired,
    CleanupFailed,
    DeadlineExceeded,
    InvalidInput,
    PollTimeout,
    PublishError,
    RemoteRejected,
)
from ..models import PLATFORM_FACEBOOK, MediaAsset, PlatformCredential
from ..utils.http import is_success, request_with_retries
from ..utils.meta_graph import extract_graph_error, is_graph_auth_error

logger = logging.getLogger("uvicorn.error")


@dataclass
class RemoteVideoHandle:
    video_id: str
    upload_url: str
    status: str = "initiated"  # initiated | uploaded | finished | ready | failed
    thumbnail_handle: str | None = None


@dataclass
class ReelUpload:
    video_id: str
    url: str
    scheduled: bool = False
    thumbnail_attached: bool = False
    poll_attempts: int = 0


class FacebookReelsDriver:
    """Facebook Page Reels via the 3-phase upload API, then status polling until ready."""

    @classmethod
    def public_url(cls, video_id: str) -> str:
        return settings.facebook_public_url_template.format(video_id=video_id)

    @classmethod
    def _rejected(cls, phase: str, response: requests.Response) -> PublishError:
        detail = extract_graph_error(response)
        if is_graph_auth_error(response):
            return AuthExpired(
                f"Facebook rejected the Page token during {phase}: {detail}",
                platform=PLATFORM_FACEBOOK,
            )
        return RemoteRejected(
            f"Reel {phase} phase failed: {detail}",
            platform=PLATFORM_FACEBOOK,
            details=(response.text or "")[:600] or None,
            status_code=response.status_code,
        )

    @classmethod
    def _check_deadline(cls, deadline: float | None, phase: str) -> None:
        if deadline is not None and time.monotonic() >= deadline:
            raise DeadlineExceeded(
                f"Publish deadline reached before Reel {phase} phase",
                platform=PLATFORM_FACEBOOK,
            )

    @classmethod
    def _json_payload(cls, response: requests.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}

    @classmethod
    def _binary_headers(cls, token: str, size: int) -> dict[str, str]:
        return {
            "Authorization": f"OAuth {token}",
            "Offset": "0",
            "File_Size": str(size),
            "Content-Type": "application/octet-stream",
        }

    @classmethod
    def _start(
        cls,
        *,
        session: requests.Session,
        base: str,
        page_id: str,
        token: str,
    ) -> RemoteVideoHandle:
        start_resp = request_with_retries(
            lambda: session.post(
                f"{base}/{page_id}/video_reels",
                params={"upload_phase": "start"},
                data={"access_token": token},
                timeout=settings.http_timeout_seconds,
            ),
        )
        if not is_success(start_resp):
            raise cls._rejected("start", start_resp)
        start_payload = cls._json_payload(start_resp)
        video_id = start_payload.get("video_id")
        upload_url = start_payload.get("upload_url")
        if not video_id:
            raise RemoteRejected(
                f"Reel start phase returned no video_id: {start_payload}",
                platform=PLATFORM_FACEBOOK,
            )
        handle = RemoteVideoHandle(video_id=str(video_id), upload_url=str(upload_url or ""))
        if not upload_url:
            raise RemoteRejected(
                f"Reel start phase returned no upload_url: {start_payload}",
                platform=PLATFORM_FACEBOOK,
                details={"video_id": handle.video_id},
            )
        logger.info("Facebook reel upload session started (video_id=%s)", handle.video_id)
        return handle

    @classmethod
    def _transfer(
        cls,
        *,
        session: requests.Session,
        handle: RemoteVideoHandle,
        token: str,
        media: MediaAsset,
    ) -> None:
        upload_resp = request_with_retries(
            lambda: session.post(
                handle.upload_url,
                headers=cls._binary_headers(token, media.size),
                data=media.data,
                timeout=settings.http_transfer_timeout_seconds,
            ),
            max_attempts=2,
        )
        if not is_success(upload_resp):
            if is_graph_auth_error(upload_resp):
                raise cls._rejected("upload", upload_resp)
            raise RemoteRejected(
                f"Reel upload phase failed ({upload_resp.status_code}): {(upload_resp.text or '')[:300]}",
                platform=PLATFORM_FACEBOOK,
                status_code=upload_resp.status_code,
            )
        handle.status = "uploaded"
        logger.info("Facebook reel binary transferred (video_id=%s, bytes=%s)", handle.video_id, media.size)

    @classmethod
    def _stage_thumbnail(
        cls,
        *,
        session: requests.Session,
        base: str,
        page_id: str,
        token: str,
        media: MediaAsset,
    ) -> str:
        thumbnail = media.thumbnail or b""
        init_resp = request_with_retries(
            lambda: session.post(
                f"{base}/{page_id}/video_thumbnails",
                params={"upload_phase": "start"},
                data={"access_token": token, "file_size": str(len(thumbnail))},
                timeout=settings.http_timeout_seconds,
            ),
        )
        if not is_success(init_resp):
            raise cls._rejected("thumbnail start", init_resp)
        init_payload = cls._json_payload(init_resp)
        upload_url = init_payload.get("upload_url")
        if not upload_url:
            raise RemoteRejected(
                f"Thumbnail start returned no upload_url: {init_payload}",
                platform=PLATFORM_FACEBOOK,
            )

        transfer_resp = request_with_retries(
            lambda: session.post(
                str(upload_url),
                headers={
                    **cls._binary_headers(token, len(thumbnail)),
                    "Content-Type": media.thumbnail_content_type,
                },
                data=thumbnail,
                timeout=settings.http_timeout_seconds,
            ),
            max_attempts=2,
        )
        if not is_success(transfer_resp):
            raise cls._rejected("thumbnail upload", transfer_resp)
        transfer_payload = cls._json_payload(transfer_resp)
        file_id = (
            transfer_payload.get("thumbnail_file_id")
            or init_payload.get("thumbnail_file_id")
            or init_payload.get("id")
        )
        if not file_id:
            raise RemoteRejected(
                f"Thumbnail upload returned no file id: {transfer_payload}",
                platform=PLATFORM_FACEBOOK,
            )
        return str(file_id)

    @classmethod
    def _finish(
        cls,
        *,
        session: requests.Session,
        base: str,
        page_id: str,
        token: str,
        handle: RemoteVideoHandle,
        description: str,
        scheduled_at: datetime | None,
    ) -> None:
        data: dict[str, Any] = {
            "video_id": handle.video_id,
            "access_token": token,
            "description": description,
        }
        if scheduled_at:
            data["video_state"] = "SCHEDULED"
            data["scheduled_publish_time"] = str(int(_as_utc(scheduled_at).timestamp()))
        else:
            data["video_state"] = "PUBLISHED"
        if handle.thumbnail_handle:
            data["thumbnail_file_id"] = handle.thumbnail_handle

        finish_resp = request_with_retries(
            lambda: session.post(
                f"{base}/{page_id}/video_reels",
                params={"upload_phase": "finish"},
                data=data,
                timeout=settings.http_timeout_seconds,
            ),
        )
        if not is_success(finish_resp):
            raise cls._rejected("finish", finish_resp)
        finish_payload = cls._json_payload(finish_resp)
        if not cls._coerce_bool(finish_payload.get("success")) and not finish_payload.get("post_id"):
            raise RemoteRejected(
                f"Reel finish phase did not report success: {finish_payload or finish_resp.text[:300]}",
                platform=PLATFORM_FACEBOOK,
            )
        handle.status = "finished"
        logger.info(
            "Facebook reel finish accepted (video_id=%s, state=%s)",
            handle.video_id,
            data["video_state"],
        )

    @classmethod
    def _coerce_bool(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes"}
        return False

    @classmethod
    def _summarize_video_status(cls, status_payload: dict[str, Any]) -> str:
        status = status_payload.get("status")
        if not isinstance(status, dict):
            return "unavailable"
        bits: list[str] = []
        video_status = str(status.get("video_status") or "").strip()
        if video_status:
            bits.append(f"video={video_status}")
        for phase_key, label in (
            ("uploading_phase", "uploading"),
            ("processing_phase", "processing"),
            ("publishing_phase", "publishing"),
        ):
            phase = status.get(phase_key)
            if not isinstance(phase, dict):
                continue
            phase_status = str(phase.get("status") or "").strip()
            if phase_status:
                bits.append(f"{label}={phase_status}")
            phase_error = phase.get("error")
            if isinstance(phase_error, dict) and phase_error.get("message"):
                bits.append(f"{label}_error={phase_error['message']}")
        return ", ".join(bits) if bits else "unavailable"

    @classmethod
    def _wait_until_ready(
        cls,
        *,
        session: requests.Session,
        base: str,
        token: str,
        handle: RemoteVideoHandle,
        deadline: float | None,
    ) -> int:
        attempts = max(1, settings.facebook_poll_attempts)
        for attempt in range(1, attempts + 1):
            cls._check_deadline(deadline, "status poll")
            try:
                status_resp = session.get(
                    f"{base}/{handle.video_id}",
                    params={"fields": "status", "access_token": token},
                    timeout=settings.http_timeout_seconds,
                )
            except requests.RequestException as exc:
                logger.warning(
                    "Facebook reel status poll %s/%s failed (video_id=%s): %s",
                    attempt,
                    attempts,
                    handle.video_id,
                    exc,
                )
                status_resp = None

            if status_resp is not None and is_success(status_resp):
                payload = cls._json_payload(status_resp)
                status = payload.get("status")
                video_status = (
                    str(status.get("video_status") or "").strip().lower()
                    if isinstance(status, dict)
                    else ""
                )
                if video_status == "ready":
                    handle.status = "ready"
                    logger.info(
                        "Facebook reel ready after %s poll(s) (video_id=%s)",
                        attempt,
                        handle.video_id,
                    )
                    return attempt
                if video_status == "error":
                    raise RemoteRejected(
                        f"Reel processing failed: {cls._summarize_video_status(payload)}",
                        platform=PLATFORM_FACEBOOK,
                    )
            elif status_resp is not None:
                logger.warning(
                    "Facebook reel status poll %s/%s returned HTTP %s (video_id=%s)",
                    attempt,
                    attempts,
                    status_resp.status_code,
                    handle.video_id,
                )

            if attempt < attempts:
                time.sleep(settings.facebook_poll_interval_seconds)

        raise PollTimeout(
            f"Reel processing did not finish after {attempts} status checks",
            platform=PLATFORM_FACEBOOK,
            details={"video_id": handle.video_id},
        )

    @classmethod
    def delete_remote_video(
        cls,
        *,
        session: requests.Session,
        base: str,
        token: str,
        video_id: str,
    ) -> None:
        try:
            resp = session.delete(
                f"{base}/{video_id}",
                params={"access_token": token},
                timeout=settings.http_timeout_seconds,
            )
        except requests.RequestException as exc:
            raise CleanupFailed(
                f"Delete request for video {video_id} failed: {exc}",
                platform=PLATFORM_FACEBOOK,
            ) from exc
        if not is_success(resp):
            raise CleanupFailed(
                f"Delete of video {video_id} was rejected: {extract_graph_error(resp)}",
                platform=PLATFORM_FACEBOOK,
                details={"status_code": resp.status_code},
            )

    @classmethod
    def cleanup(
        cls,
        *,
        session: requests.Session,
        base: str,
        token: str,
        video_id: str,
    ) -> bool:
        """Best-effort removal of a partially created reel; never raises."""
        try:
            cls.delete_remote_video(session=session, base=base, token=token, video_id=video_id)
        except CleanupFailed as exc:
            logger.warning("Facebook reel cleanup failed (video_id=%s): %s", video_id, exc.message)
            return False
        except Exception:
            logger.exception("Facebook reel cleanup crashed (video_id=%s)", video_id)
            return False
        logger.info("Deleted partially uploaded Facebook reel (video_id=%s)", video_id)
        return True

    @classmethod
    def upload(
        cls,
        *,
        credential: PlatformCredential,
        media: MediaAsset | None,
        description: str,
        scheduled_at: datetime | None = None,
        deadline: float | None = None,
        session: requests.Session | None = None,
    ) -> ReelUpload:
        if media is None or not media.data:
            raise InvalidInput("Video file is required", platform=PLATFORM_FACEBOOK)
        page_id = credential.account_id
        if not page_id:
            raise InvalidInput(
                "Facebook credential has no Page id. Reconnect the Facebook Page.",
                platform=PLATFORM_FACEBOOK,
            )
        token = credential.access_token
        base = settings.meta_graph_base
        owns_session = session is None
        http = session or requests.Session()
        handle: RemoteVideoHandle | None = None

        try:
            cls._check_deadline(deadline, "start")
            try:
                handle = cls._start(session=http, base=base, page_id=page_id, token=token)
            except requests.RequestException as exc:
                raise RemoteRejected(
                    f"Reel start phase failed: {exc}",
                    platform=PLATFORM_FACEBOOK,
                ) from exc
            except RemoteRejected as exc:
                orphan_id = (exc.details or {}).get("video_id") if isinstance(exc.details, dict) else None
                if orphan_id:
                    cls.cleanup(session=http, base=base, token=token, video_id=str(orphan_id))
                raise

            try:
                cls._check_deadline(deadline, "upload")
                cls._transfer(session=http, handle=handle, token=token, media=media)

                if media.has_thumbnail:
                    try:
                        handle.thumbnail_handle = cls._stage_thumbnail(
                            session=http,
                            base=base,
                            page_id=page_id,
                            token=token,
                            media=media,
                        )
                    except (PublishError, requests.RequestException) as exc:
                        if settings.facebook_strict_thumbnail:
                            raise
                        logger.warning(
                            "Facebook thumbnail staging failed (video_id=%s), finishing without it: %s",
                            handle.video_id,
                            exc,
                        )

                cls._check_deadline(deadline, "finish")
                cls._finish(
                    session=http,
                    base=base,
                    page_id=page_id,
                    token=token,
                    handle=handle,
                    description=description,
                    scheduled_at=scheduled_at,
                )
                poll_attempts = cls._wait_until_ready(
                    session=http,
                    base=base,
                    token=token,
                    handle=handle,
                    deadline=deadline,
                )
            except (PublishError, requests.RequestException) as exc:
                handle.status = "failed"
                cls.cleanup(session=http, base=base, token=token, video_id=handle.video_id)
                if isinstance(exc, requests.RequestException):
                    raise RemoteRejected(
                        f"Reel upload failed: {exc}",
                        platform=PLATFORM_FACEBOOK,
                    ) from exc
                raise

            return ReelUpload(
                video_id=handle.video_id,
                url=cls.public_url(handle.video_id),
                scheduled=scheduled_at is not None,
                thumbnail_attached=handle.thumbnail_handle is not None,
                poll_attempts=poll_attempts,
            )
        finally:
            if owns_session:
                http.close()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
