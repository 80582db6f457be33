from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, status

from ..models import OrderUpdatesRequest, OrderUpdatesResponse, ShortlistSyncRequest, ShortlistSyncResponse
from ..services.errors import BadRequestError
from ..services.shortlist_registry import ShortlistRegistry, get_shortlist_registry
from ..utils.logging import get_request_logger

router = APIRouter(prefix="/api/support", tags=["support"])
logger = logging.getLogger(__name__)


def get_registry() -> ShortlistRegistry:
    return get_shortlist_registry()


@router.post("/shortlist", response_model=ShortlistSyncResponse, response_model_by_alias=True)
async def sync_shortlist(
    request: ShortlistSyncRequest,
    registry: ShortlistRegistry = Depends(get_registry),
    x_request_id: Optional[str] = Header(default=None),
) -> ShortlistSyncResponse:
    if not request.session_id.strip():
        raise BadRequestError(
            "sessionId must not be empty",
            reason="missing_session_id",
            http_status=status.HTTP_400_BAD_REQUEST,
        )
    req_logger = get_request_logger(logger, request_id=x_request_id, session_id=request.session_id)
    count = registry.replace_shortlist(request.session_id, request.items)
    req_logger.info("Shortlist replaced count=%d", count)
    return ShortlistSyncResponse(session_id=request.session_id, count=count)


@router.post("/order-updates", response_model=OrderUpdatesResponse, response_model_exclude_none=True)
async def subscribe_order_updates(
    request: OrderUpdatesRequest,
    registry: ShortlistRegistry = Depends(get_registry),
    x_request_id: Optional[str] = Header(default=None),
) -> OrderUpdatesResponse:
    if not request.session_id:
        raise BadRequestError(
            "sessionId is required",
            reason="missing_session_id",
            http_status=status.HTTP_400_BAD_REQUEST,
        )
    req_logger = get_request_logger(
        logger,
        request_id=x_request_id,
        session_id=request.session_id,
        intent=request.origin_intent.value if request.origin_intent else None,
    )
    registry.subscribe_order_updates(request)
    reference = request.order_number or request.order_id
    req_logger.info("Order updates subscribed order=%s", reference or "-")
    if reference:
        return OrderUpdatesResponse(message=f"Done. I'll text you as {reference} moves through the studio.")
    return OrderUpdatesResponse()
