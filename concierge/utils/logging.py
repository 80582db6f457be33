from __future__ import annotations

import logging
from typing import Any


class RequestLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that prefixes messages with request/session/intent context."""

    def process(self, msg: Any, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        request_id = self.extra.get("request_id") or "-"
        session_id = self.extra.get("session_id") or "-"
        intent = self.extra.get("intent") or "-"
        prefix = f"request_id={request_id} session_id={session_id} intent={intent}"
        return f'{prefix} msg="{msg}"', kwargs


def get_request_logger(
    logger: logging.Logger | str,
    *,
    request_id: str | None,
    session_id: str | None,
    intent: str | None = None,
) -> RequestLoggerAdapter:
    base_logger = logging.getLogger(logger) if isinstance(logger, str) else logger
    return RequestLoggerAdapter(
        base_logger,
        {
            "request_id": request_id or "-",
            "session_id": session_id or "-",
            "intent": intent or "-",
        },
    )
