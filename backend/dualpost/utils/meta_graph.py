from __future__ import annotations

from typing import Any

import requests

# Graph API codes for invalid, expired or revoked access tokens.
_AUTH_ERROR_CODES = {102, 190}


def graph_error_object(response: requests.Response) -> dict[str, Any]:
    try:
        payload = response.json()
        err = payload.get("error")
        if isinstance(err, dict):
            return err
    except Exception:
        pass
    return {}


def extract_graph_error(response: requests.Response) -> str:
    """Extract a readable error message from a Meta Graph API error response."""
    err = graph_error_object(response)
    message = str(err.get("message") or "").strip()
    code = err.get("code")
    subcode = err.get("error_subcode")
    fbtrace = err.get("fbtrace_id")
    parts: list[str] = []
    if message:
        parts.append(message)
    if code is not None:
        parts.append(f"code={code}")
    if subcode is not None:
        parts.append(f"subcode={subcode}")
    if fbtrace:
        parts.append(f"fbtrace={fbtrace}")
    if parts:
        return " | ".join(parts)

    raw = (response.text or "").strip()
    return raw[:600] if raw else f"HTTP {response.status_code}"


def is_graph_auth_error(response: requests.Response) -> bool:
    if response.status_code == 401:
        return True
    err = graph_error_object(response)
    try:
        code = int(err.get("code") or 0)
    except (TypeError, ValueError):
        return False
    return code in _AUTH_ERROR_CODES
