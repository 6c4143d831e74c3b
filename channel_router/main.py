"""FastAPI application entry point."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from channel_router.api import admin, catalog
from channel_router.core.config import load_settings
from channel_router.core.exceptions import (
    CatalogEntryNotFoundError,
    CredentialError,
    ExecutionError,
    SelectionError,
)
from channel_router.logging import configure_logging, get_request_id
from channel_router.middleware.request_context import RequestContextMiddleware
from channel_router.storage.database import init_db
from channel_router.telemetry.events import record_event

configure_logging()

logger = logging.getLogger("channel_router.app")

app = FastAPI(
    title="Channel Router",
    version="0.1.0",
    openapi_url="/api/openapi.json",
    docs_url="/api/docs",
    redoc_url=None,
)
app.include_router(catalog.router)
app.include_router(admin.router)
app.add_middleware(RequestContextMiddleware)


@app.on_event("startup")
def on_startup() -> None:
    init_db()
    load_settings()


def _error(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "code": code}},
    )


@app.exception_handler(CatalogEntryNotFoundError)
async def catalog_entry_not_found_handler(
    request: Request, exc: CatalogEntryNotFoundError
) -> JSONResponse:
    return _error(404, exc.message, "catalog_entry_not_found")


@app.exception_handler(SelectionError)
async def selection_error_handler(request: Request, exc: SelectionError) -> JSONResponse:
    return _error(503, exc.message, "no_provider_available")


@app.exception_handler(CredentialError)
async def credential_error_handler(request: Request, exc: CredentialError) -> JSONResponse:
    return _error(400, exc.message, "provider_credentials_invalid")


@app.exception_handler(ExecutionError)
async def execution_error_handler(request: Request, exc: ExecutionError) -> JSONResponse:
    # The per-attempt trail lives in the usage log; vendor errors are not echoed.
    channel = getattr(exc.channel_type, "value", exc.channel_type)
    return _error(502, f"All {channel} providers failed", "providers_exhausted")


@app.exception_handler(Exception)
async def unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error",
        extra={"event": "request_error", "path": request.url.path},
    )
    record_event(
        "request_error",
        "ERROR",
        request_id=get_request_id(),
        message=str(exc),
        meta={"path": request.url.path},
    )
    return _error(500, "Internal server error", "internal_error")
