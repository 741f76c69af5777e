"""FastAPI application entry point."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from apihub.api import admin, sites
from apihub.core.config import load_config
from apihub.core.exceptions import ErrorCode
from apihub.logging import configure_logging, get_request_id
from apihub.middleware.request_context import RequestContextMiddleware
from apihub.storage.database import init_db
from apihub.telemetry.events import record_event

configure_logging()

logger = logging.getLogger("apihub.app")

app = FastAPI(
    title="One API Hub",
    version="0.1.0",
    openapi_url="/api/openapi.json",
    docs_url="/api/docs",
    redoc_url=None,
)
app.include_router(sites.router)
app.include_router(admin.router)
app.add_middleware(RequestContextMiddleware)


@app.on_event("startup")
def on_startup() -> None:
    init_db()
    load_config()


@app.exception_handler(RequestValidationError)
async def invalid_request_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": str(first.get("msg", "Invalid request")),
            "errorCode": ErrorCode.INVALID_REQUEST.value,
        },
    )


@app.exception_handler(Exception)
async def unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error",
        extra={
            "event": "request_error",
            "path": request.url.path,
            "request_id": get_request_id(),
        },
    )
    record_event(
        "request_error",
        "ERROR",
        message=str(exc),
        meta={"path": request.url.path},
    )
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "errorCode": ErrorCode.INTERNAL_SERVER_ERROR.value,
        },
    )
