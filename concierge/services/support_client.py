from __future__ import annotations

import logging
import time
from typing import Any, Dict, Sequence

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..models import (
    OrderUpdatesRequest,
    OrderUpdatesResponse,
    ProductSummary,
    ShortlistSyncRequest,
    ShortlistSyncResponse,
)
from ..utils.logging import get_request_logger
from .errors import SupportApiError

logger = logging.getLogger(__name__)

SHORTLIST_PATH = "/api/support/shortlist"
ORDER_UPDATES_PATH = "/api/support/order-updates"


class SupportApiClient:
    """HTTP client for the storefront support endpoints."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    async def sync_shortlist(
        self,
        session_id: str,
        items: Sequence[ProductSummary],
        *,
        request_id: str,
    ) -> ShortlistSyncResponse | None:
        """Replace the backend copy of the shortlist with ``items``."""

        body = ShortlistSyncRequest(session_id=session_id, items=list(items))
        response = await self._post(
            SHORTLIST_PATH,
            body.model_dump(mode="json", by_alias=True),
            request_id=request_id,
            session_id=session_id,
        )
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SupportApiError(
                str(exc),
                reason="shortlist_sync_failed",
                http_status=response.status_code,
            ) from exc
        try:
            return ShortlistSyncResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            return None

    async def subscribe_order_updates(
        self,
        request: OrderUpdatesRequest,
        *,
        request_id: str,
    ) -> OrderUpdatesResponse | None:
        """
        Ask the backend to text order milestones to the guest.

        Returns None when the backend answers with a non-2xx status; raises
        SupportApiError only when the request itself could not be made.
        """

        response = await self._post(
            ORDER_UPDATES_PATH,
            request.model_dump(mode="json", by_alias=True),
            request_id=request_id,
            session_id=request.session_id,
        )
        if not response.is_success:
            return None
        try:
            return OrderUpdatesResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            return OrderUpdatesResponse()

    async def _post(
        self,
        path: str,
        payload: Dict[str, Any],
        *,
        request_id: str,
        session_id: str | None,
    ) -> httpx.Response:
        url = f"{self._settings.support_api_base_url.rstrip('/')}{path}"
        headers = {"Content-Type": "application/json", "x-request-id": request_id}
        timeout = httpx.Timeout(self._settings.http_timeout_seconds)
        req_logger = get_request_logger(logger, request_id=request_id, session_id=session_id)
        start = time.perf_counter()
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            try:
                response = await client.post(url, json=payload, headers=headers)
            except httpx.HTTPError as exc:
                req_logger.error("support_api error url=%s error=%s", url, exc)
                raise SupportApiError(str(exc), reason="support_api_unreachable") from exc
        elapsed_ms = (time.perf_counter() - start) * 1000
        req_logger.info(
            "support_api.post path=%s status=%s latency_ms=%.1f",
            path,
            response.status_code,
            elapsed_ms,
        )
        return response
