from __future__ import annotations

import time
from typing import Callable

import requests

from ..config import settings

RETRY_STATUS_CODES = {408, 429, 500, 502, 503, 504}


def is_success(response: requests.Response) -> bool:
    return 200 <= response.status_code < 300


def sleep_backoff(attempt: int) -> None:
    time.sleep(settings.http_retry_base_delay_seconds * (2 ** (attempt - 1)))


def request_with_retries(
    request_fn: Callable[[], requests.Response],
    *,
    max_attempts: int | None = None,
) -> requests.Response:
    """Run ``request_fn`` again on transport errors and retryable status codes."""
    attempts = max(1, max_attempts or settings.http_max_attempts)
    last_exc: Exception | None = None

    for attempt in range(1, attempts + 1):
        try:
            response = request_fn()
        except requests.RequestException as exc:
            last_exc = exc
            if attempt >= attempts:
                raise
            sleep_backoff(attempt)
            continue

        if response.status_code in RETRY_STATUS_CODES and attempt < attempts:
            sleep_backoff(attempt)
            continue
        return response

    if last_exc:
        raise last_exc
    raise RuntimeError("Request failed after retries")
