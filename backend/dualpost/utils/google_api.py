from __future__ import annotations

import json

from googleapiclient.errors import HttpError

_AUTH_REASONS = {
    "unauthorized",
    "autherror",
    "invalidcredentials",
    "youtubesignuprequired",
}
_QUOTA_REASONS = {
    "quotaexceeded",
    "dailylimitexceeded",
    "dailylimitexceededunreg",
    "userratelimitexceeded",
    "ratelimitexceeded",
}


def _error_payload(exc: HttpError) -> dict:
    try:
        payload = json.loads(exc.content.decode("utf-8"))
    except Exception:
        return {}
    error = payload.get("error") if isinstance(payload, dict) else None
    return error if isinstance(error, dict) else {}


def _reasons(exc: HttpError) -> set[str]:
    return {
        str(item.get("reason", "")).lower()
        for item in _error_payload(exc).get("errors", [])
        if isinstance(item, dict) and item.get("reason")
    }


def extract_http_error_detail(exc: HttpError) -> str:
    """Return a readable message from Google API HttpError."""
    error = _error_payload(exc)
    message = error.get("message")
    reasons = sorted(_reasons(exc))
    parts: list[str] = []
    if message:
        parts.append(str(message))
    if reasons:
        parts.append(f"reasons={','.join(reasons)}")
    if parts:
        return " | ".join(parts)
    return str(exc)


def is_auth_error(exc: HttpError) -> bool:
    status = getattr(exc.resp, "status", None)
    try:
        status = int(status) if status is not None else 0
    except (TypeError, ValueError):
        status = 0
    if status == 401:
        return True
    reasons = _reasons(exc)
    if reasons & _QUOTA_REASONS:
        return False
    if status == 403 and not reasons:
        return True
    return bool(reasons & _AUTH_REASONS)


def is_quota_error(exc: HttpError) -> bool:
    """Detect daily quota exhaustion from YouTube API errors."""
    if _reasons(exc) & _QUOTA_REASONS:
        return True
    detail = extract_http_error_detail(exc).lower()
    return "exceeded your quota" in detail
