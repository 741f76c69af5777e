"""Site operation routes used by the dashboard.

Site records live in the dashboard's own store, so every route receives the
credential in the request body and returns the ``{success, data, error,
errorCode}`` envelope the frontend expects.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from apihub.core.config import AppConfig, load_config
from apihub.core.exceptions import ErrorCode
from apihub.providers.base import SiteCredential
from apihub.providers.site_adapter import SiteAdapter
from apihub.providers.variants import ProviderVariant
from apihub.services.summary import summarize_sites
from apihub.telemetry.events import record_event

router = APIRouter(prefix="/api/sites", tags=["sites"])


class SummaryRequest(BaseModel):
    sites: list[SiteCredential] = Field(default_factory=list)


def get_app_config() -> AppConfig:
    return load_config()


def get_site_adapter(config: Annotated[AppConfig, Depends(get_app_config)]) -> SiteAdapter:
    return SiteAdapter.from_config(config)


Adapter = Annotated[SiteAdapter, Depends(get_site_adapter)]


def _envelope(
    data: Any,
    *,
    success: bool = True,
    error: str | None = None,
    error_code: ErrorCode | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {"success": success, "data": data}
    if error is not None:
        body["error"] = error
    if error_code is not None:
        body["errorCode"] = error_code.value
    return body


def _event_fields(credential: SiteCredential, operation: str) -> dict[str, Any]:
    variant = credential.variant
    return {
        "site": credential.label,
        "variant": variant.value if isinstance(variant, ProviderVariant) else variant,
        "operation": operation,
    }


@router.post("/validate")
async def validate_site(credential: SiteCredential, adapter: Adapter) -> Any:
    valid = await adapter.validate(credential)
    if valid:
        return _envelope({"valid": True})

    await run_in_threadpool(
        record_event,
        "site_validation_failed",
        "WARNING",
        message="Site credentials were rejected or the site was unreachable",
        error_code=ErrorCode.SITE_INVALID_CREDENTIALS.value,
        **_event_fields(credential, "account_info"),
    )
    return JSONResponse(
        status_code=400,
        content=_envelope(
            {"valid": False},
            success=False,
            error="Invalid site credentials",
            error_code=ErrorCode.SITE_INVALID_CREDENTIALS,
        ),
    )


@router.post("/user")
async def get_site_user(credential: SiteCredential, adapter: Adapter) -> dict[str, Any]:
    account = await adapter.fetch_account_info(credential)
    return _envelope(account.model_dump() if account else None)


@router.post("/tokens")
async def get_site_tokens(credential: SiteCredential, adapter: Adapter) -> dict[str, Any]:
    keys = await adapter.list_api_keys(credential)
    return _envelope([key.model_dump() for key in keys])


@router.post("/checkin")
async def check_in_site(credential: SiteCredential, adapter: Adapter) -> dict[str, Any]:
    outcome = await adapter.check_in(credential)
    await run_in_threadpool(
        record_event,
        "site_checkin_succeeded" if outcome.succeeded else "site_checkin_failed",
        "INFO" if outcome.succeeded else "WARNING",
        message=outcome.message,
        error_code=outcome.error_code.value if outcome.error_code else None,
        **_event_fields(credential, "check_in"),
    )
    if outcome.succeeded:
        return _envelope({"message": outcome.message})
    return _envelope(
        {"message": outcome.message},
        success=False,
        error=outcome.message or "Check-in failed",
        error_code=outcome.error_code or ErrorCode.CHECKIN_FAILED,
    )


@router.post("/refresh")
async def refresh_site(credential: SiteCredential, adapter: Adapter) -> dict[str, Any]:
    result = await adapter.refresh(credential)
    return _envelope(result.model_dump())


@router.post("/summary")
async def summarize(
    payload: SummaryRequest,
    adapter: Adapter,
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> dict[str, Any]:
    summary = await summarize_sites(
        adapter, payload.sites, max_concurrency=config.dashboard.max_concurrency
    )
    return _envelope(summary.model_dump())
