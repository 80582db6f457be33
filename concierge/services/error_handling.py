from __future__ import annotations

import logging
import traceback
import uuid
from typing import Any, Tuple

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .errors import BadRequestError, ConciergeError, StorageError, SupportApiError

logger = logging.getLogger(__name__)

SAFE_ERROR_TEXT = "I ran into a snag. Mind trying that again?"


def _detail_to_reason(detail: Any) -> str:
    if isinstance(detail, dict):
        return detail.get("reason") or detail.get("message") or "unknown"
    if isinstance(detail, list):
        return detail[0] if detail else "unknown"
    if detail:
        return str(detail)
    return "unknown"


def map_exception_to_error_code(exc: Exception) -> Tuple[str, str, int]:
    """Return normalized error code, reason, and HTTP status for the given exception."""

    if isinstance(exc, BadRequestError):
        return (
            "BAD_REQUEST",
            exc.reason or "bad_request",
            exc.http_status or status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(exc, RequestValidationError):
        return ("BAD_REQUEST", "request_validation_error", status.HTTP_422_UNPROCESSABLE_ENTITY)

    if isinstance(exc, SupportApiError):
        return (
            "UPSTREAM_UNAVAILABLE",
            exc.reason or "upstream_error",
            exc.http_status or status.HTTP_502_BAD_GATEWAY,
        )

    if isinstance(exc, StorageError):
        return (
            "STORAGE_ERROR",
            exc.reason or "storage_error",
            exc.http_status or status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, HTTPException):
        status_code = exc.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR
        reason = _detail_to_reason(exc.detail)
        if status.HTTP_400_BAD_REQUEST <= status_code < status.HTTP_500_INTERNAL_SERVER_ERROR:
            return ("BAD_REQUEST", reason or "bad_request", status_code)
        return ("INTERNAL_ERROR", reason or "internal_error", status_code)

    if isinstance(exc, ConciergeError):
        return (
            exc.code,
            exc.reason or "internal_error",
            exc.http_status or status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return (
        "INTERNAL_ERROR",
        getattr(exc, "reason", None) or exc.__class__.__name__,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def build_error_response(
    *,
    error_code: str,
    reason: str,
    status_code: int,
    trace_id: str,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "message": SAFE_ERROR_TEXT,
            "error": {"code": error_code, "reason": reason},
            "traceId": trace_id,
        },
    )


def new_trace_id() -> str:
    return uuid.uuid4().hex


def log_exception(
    *,
    request: Request,
    exc: Exception,
    trace_id: str,
    handled: bool,
) -> None:
    log_message = "Handled support API error" if handled else "Unhandled support API error"
    log_method = logger.warning if handled else logger.exception
    log_method(
        "%s trace_id=%s path=%s reason=%s",
        log_message,
        trace_id,
        request.url.path,
        getattr(exc, "reason", None) or exc.__class__.__name__,
        exc_info=exc if not handled else None,
    )
    if handled:
        logger.debug(
            "Full traceback for trace_id=%s\n%s",
            trace_id,
            "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        )
