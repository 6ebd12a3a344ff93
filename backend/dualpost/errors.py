"""Error taxonomy shared by the platform drivers and the publish orchestrator."""
from __future__ import annotations

from typing import Any


class PublishError(Exception):
    """
    Base error for publish flows.

    Drivers raise subclasses; the orchestrator converts them into a per-platform
    outcome using ``code`` and ``message``.
    """

    code = "publish_error"

    def __init__(
        self,
        message: str,
        *,
        platform: str | None = None,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.platform = platform
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"[{self.code}] {self.message} (details: {self.details})"
        return f"[{self.code}] {self.message}"


class Unauthorized(PublishError):
    code = "unauthorized"


class PlatformNotConnected(PublishError):
    code = "platform_not_connected"


class AuthExpired(PublishError):
    """The remote platform rejected the stored credential; the user must reconnect."""

    code = "auth_expired"


class InvalidInput(PublishError):
    code = "invalid_input"


class RemoteRejected(PublishError):
    code = "remote_rejected"

    def __init__(
        self,
        message: str,
        *,
        platform: str | None = None,
        details: Any | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, platform=platform, details=details)
        self.status_code = status_code


class PollTimeout(PublishError):
    code = "poll_timeout"


class CleanupFailed(PublishError):
    code = "cleanup_failed"


class DeadlineExceeded(PublishError):
    code = "deadline_exceeded"
