"""Typed errors raised by the progression services.

Every error carries a stable ``code`` the client can switch on, an HTTP
status, a user-safe message and optional structured ``extra`` fields. The API
layer renders them through a single exception handler; nothing here ever
holds a traceback or query text.
"""

from __future__ import annotations

from typing import Any


class JourneyError(Exception):
    """Base class for user-facing progression errors."""

    code = "ServerError"
    status_code = 500
    retryable = False
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ok": False, "error": self.code, "message": self.message}
        payload.update(self.extra)
        return payload


class NotFound(JourneyError):
    code = "NotFound"
    status_code = 404
    default_message = "Task not found"


class Forbidden(JourneyError):
    code = "Forbidden"
    status_code = 403
    default_message = "Task does not belong to user"


class StageLocked(JourneyError):
    code = "stage_locked"
    status_code = 403
    default_message = "This stage is locked. Complete the previous stage to unlock it."


class ConditionsNotMet(JourneyError):
    """Carries ``current``, ``target`` and ``progress`` so the client can guide the user."""

    code = "ConditionsNotMet"
    status_code = 400
    default_message = "Task conditions not satisfied"


class RateLimited(JourneyError):
    code = "RateLimitExceeded"
    status_code = 429
    retryable = True
    default_message = "Too many requests"

    def __init__(self, retry_after: int, limit: int) -> None:
        super().__init__(retry_after=retry_after, limit=limit)
        self.retry_after = retry_after


class Conflict(JourneyError):
    """A concurrent completion won the race. Resolved as ``already_completed``, never rendered."""

    code = "Conflict"
    status_code = 409


class ServerError(JourneyError):
    code = "ServerError"
    status_code = 503
    retryable = True
    default_message = "Temporary failure, please retry"

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["retryable"] = True
        return payload


class MetricsUnavailable(Exception):
    """Raised by metrics providers on timeout or transport failure."""
