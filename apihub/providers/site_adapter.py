"""Site adapter: the uniform contract over every supported gateway fork."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

import httpx

from apihub.core.config import AppConfig
from apihub.core.exceptions import (
    ErrorCode,
    NormalizationFailure,
    SiteAdapterError,
    TransportFailure,
    UnsuccessfulRemote,
)

from .base import AccountInfo, ApiKeyRecord, CheckInOutcome, RefreshResult, SiteCredential
from .normalizer import (
    Normalized,
    NormalizationStatus,
    parse_account_info,
    parse_api_key_list,
    parse_check_in,
)
from .request_builder import SiteOperation, build_headers, build_url
from .utils import build_error_log, extract_error_body, status_text
from .variants import DEFAULT_VARIANT, ProviderVariant

logger = logging.getLogger("apihub.sites")

T = TypeVar("T")

ClientFactory = Callable[..., httpx.AsyncClient]

_FAILURE_PREFIX = {
    SiteOperation.ACCOUNT_INFO: "Failed to fetch user info",
    SiteOperation.API_KEYS: "Failed to fetch API keys",
    SiteOperation.CHECK_IN: "Failed to check in",
}


class SiteAdapter:
    """Stateless service issuing site calls and normalizing their results.

    Public operations never raise for remote problems: transport errors,
    non-2xx responses, undecodable bodies and ``success: false`` payloads all
    collapse into the operation's failure value.
    """

    def __init__(
        self,
        timeout: float,
        *,
        fallback_variant: ProviderVariant | str = DEFAULT_VARIANT,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._timeout = timeout
        self._fallback = fallback_variant
        self._client_factory = client_factory

    @classmethod
    def from_config(cls, config: AppConfig) -> SiteAdapter:
        settings = config.site_adapter
        return cls(settings.timeout_seconds, fallback_variant=settings.fallback_variant)

    async def validate(self, candidate: SiteCredential) -> bool:
        """Return True only when the site answers 2xx with ``success: true``."""
        try:
            raw = await self._send(candidate, SiteOperation.ACCOUNT_INFO)
        except SiteAdapterError:
            return False

        valid = isinstance(raw, dict) and raw.get("success") is True
        if valid:
            logger.info(
                "Site validation successful",
                extra=self._context(candidate, SiteOperation.ACCOUNT_INFO, event="site_validated"),
            )
        else:
            logger.warning(
                "Site validation failed: unsuccessful result",
                extra=self._context(
                    candidate, SiteOperation.ACCOUNT_INFO, event="site_validation_failed"
                ),
            )
        return valid

    async def fetch_account_info(self, credential: SiteCredential) -> AccountInfo | None:
        try:
            raw = await self._send(credential, SiteOperation.ACCOUNT_INFO)
            account = self._unwrap(credential, SiteOperation.ACCOUNT_INFO, parse_account_info(raw))
        except SiteAdapterError:
            return None

        logger.info(
            "User info retrieved",
            extra=self._context(
                credential,
                SiteOperation.ACCOUNT_INFO,
                event="site_user_info",
                username=account.username,
            ),
        )
        return account

    async def list_api_keys(self, credential: SiteCredential) -> list[ApiKeyRecord]:
        """Return the first page of keys in server order; [] on any failure."""
        try:
            raw = await self._send(credential, SiteOperation.API_KEYS)
            keys = self._unwrap(credential, SiteOperation.API_KEYS, parse_api_key_list(raw))
        except SiteAdapterError:
            return []

        logger.info(
            "API keys retrieved",
            extra=self._context(
                credential,
                SiteOperation.API_KEYS,
                event="site_api_keys",
                key_count=len(keys),
            ),
        )
        return keys

    async def check_in(self, credential: SiteCredential) -> CheckInOutcome:
        try:
            raw = await self._send(credential, SiteOperation.CHECK_IN)
        except SiteAdapterError as exc:
            return CheckInOutcome(
                succeeded=False, message=exc.message, error_code=ErrorCode.CHECKIN_FAILED
            )

        outcome = parse_check_in(raw)
        log = logger.info if outcome.succeeded else logger.warning
        log(
            "Check-in succeeded" if outcome.succeeded else "Check-in rejected",
            extra=self._context(
                credential,
                SiteOperation.CHECK_IN,
                event="site_check_in",
                succeeded=outcome.succeeded,
                remote_message=outcome.message,
            ),
        )
        return outcome

    async def refresh(self, credential: SiteCredential) -> RefreshResult:
        """Fetch account info and keys concurrently; each half fails on its own."""
        account_info, api_keys = await asyncio.gather(
            self.fetch_account_info(credential),
            self.list_api_keys(credential),
            return_exceptions=True,
        )
        return RefreshResult(
            account_info=self._settled(account_info, None, credential, SiteOperation.ACCOUNT_INFO),
            api_keys=self._settled(api_keys, [], credential, SiteOperation.API_KEYS),
        )

    async def _send(self, credential: SiteCredential, operation: SiteOperation) -> Any:
        url = build_url(credential, operation, self._fallback)
        headers = build_headers(credential, self._fallback)
        label = credential.label
        logger.debug(
            "Site request",
            extra=self._context(credential, operation, event="site_request", method=operation.method),
        )

        factory = self._client_factory or httpx.AsyncClient
        # httpx raises UnicodeEncodeError for non-ASCII header values
        try:
            async with factory(timeout=self._timeout) as client:
                if operation.method == "POST":
                    response = await client.post(url, headers=headers)
                else:
                    response = await client.get(url, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL, UnicodeEncodeError) as exc:
            message = str(exc) or exc.__class__.__name__
            logger.warning(
                "Site request failed",
                extra=build_error_log(
                    site=label,
                    operation=operation.value,
                    error_type="network",
                    message=message,
                ),
            )
            raise TransportFailure(label, message=message) from exc

        if not response.is_success:
            message = f"{_FAILURE_PREFIX[operation]}: {status_text(response)}"
            logger.warning(
                "Site response not OK",
                extra=build_error_log(
                    site=label,
                    operation=operation.value,
                    error_type="http_error",
                    message=message,
                    status_code=response.status_code,
                    response_body=extract_error_body(response),
                ),
            )
            raise TransportFailure(label, message=message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            logger.warning(
                "Site response was not JSON",
                extra=build_error_log(
                    site=label,
                    operation=operation.value,
                    error_type="unexpected_response",
                    message="Response body was not valid JSON",
                    status_code=response.status_code,
                    response_body=extract_error_body(response),
                ),
            )
            raise NormalizationFailure(label) from exc

    def _settled(
        self,
        value: T | BaseException,
        default: T,
        credential: SiteCredential,
        operation: SiteOperation,
    ) -> T:
        if isinstance(value, Exception):
            logger.error(
                "Site refresh step raised",
                exc_info=value,
                extra=self._context(credential, operation, event="site_refresh_error"),
            )
            return default
        if isinstance(value, BaseException):
            raise value
        return value

    def _unwrap(
        self,
        credential: SiteCredential,
        operation: SiteOperation,
        result: Normalized[T],
    ) -> T:
        if result.ok:
            return result.value

        logger.warning(
            "Site response could not be normalized",
            extra=self._context(
                credential,
                operation,
                event="site_normalization_failed",
                normalization_status=result.status.value,
                error_message=result.detail,
            ),
        )
        if result.status is NormalizationStatus.UNSUCCESSFUL:
            raise UnsuccessfulRemote(credential.label, message=result.detail)
        raise NormalizationFailure(credential.label, message=result.detail)

    @staticmethod
    def _context(credential: SiteCredential, operation: SiteOperation, **fields: Any) -> dict[str, Any]:
        variant = credential.variant
        payload: dict[str, Any] = {
            "site": credential.label,
            "variant": variant.value if isinstance(variant, ProviderVariant) else variant,
            "operation": operation.value,
        }
        payload.update(fields)
        return payload


__all__ = ["ClientFactory", "SiteAdapter"]
