from __future__ import annotations

from typing import Any


class ConciergeError(Exception):
    """Base error for the concierge widget and its support backend."""

    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str | None = None,
        *,
        reason: str | None = None,
        http_status: int | None = None,
        debug: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message or reason or "")
        self.reason = reason or message or self.code
        self.http_status = http_status
        self.debug = debug or {}


class BadRequestError(ConciergeError):
    """Raised when a support API request is invalid."""

    code = "BAD_REQUEST"


class SupportApiError(ConciergeError):
    """Raised when a call to the support backend fails."""

    code = "UPSTREAM_UNAVAILABLE"


class StorageError(ConciergeError):
    """Raised by storage backends when a read or write fails."""

    code = "STORAGE_ERROR"


class ExecutorError(ConciergeError):
    """Raised by intent executors that want to fail with a typed reason."""

    code = "EXECUTOR_ERROR"


class HostCapabilityError(ConciergeError):
    """Raised when the widget asks the host page for a capability it has not wired."""

    code = "HOST_CAPABILITY_UNAVAILABLE"
