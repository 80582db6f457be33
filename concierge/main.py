from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .routers import support
from .services.error_handling import (
    build_error_response,
    log_exception,
    map_exception_to_error_code,
    new_trace_id,
)
from .services.errors import ConciergeError

logger = logging.getLogger(__name__)


def _error_response(request: Request, exc: Exception, *, handled: bool):
    trace_id = new_trace_id()
    log_exception(request=request, exc=exc, trace_id=trace_id, handled=handled)
    error_code, reason, status_code = map_exception_to_error_code(exc)
    return build_error_response(
        error_code=error_code,
        reason=reason,
        status_code=status_code,
        trace_id=trace_id,
    )


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="Concierge Support API",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.site_origin, "http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error_response(request, exc, handled=True)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return _error_response(request, exc, handled=True)

    @app.exception_handler(ConciergeError)
    async def concierge_error_handler(request: Request, exc: ConciergeError):
        return _error_response(request, exc, handled=True)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        return _error_response(request, exc, handled=False)

    app.include_router(support.router)
    logger.info("Support API initialized (env=%s)", settings.env)
    return app


app = create_app()
