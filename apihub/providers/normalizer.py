"""Normalization of heterogeneous gateway responses into canonical models.

The gateway forks agree on field names inside a payload but not on the
envelope around list results. Parsers here never raise: they return a
``Normalized`` result whose status tells ``ok`` apart from the ways a payload
can fail (``unsuccessful``, ``unmatched`` and ``malformed``).
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError, ValidationInfo, field_validator

from apihub.core.exceptions import ErrorCode

from .base import AccountInfo, ApiKeyRecord, CheckInOutcome

T = TypeVar("T")

TOKEN_STATUS_ENABLED = 1


class NormalizationStatus(str, Enum):
    OK = "ok"
    UNSUCCESSFUL = "unsuccessful"
    UNMATCHED = "unmatched"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class Normalized(Generic[T]):
    status: NormalizationStatus
    value: T
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is NormalizationStatus.OK


def _default_if_null(model: type[BaseModel], value: Any, info: ValidationInfo) -> Any:
    # the forks send null for counters they do not track
    if value is None:
        return model.model_fields[info.field_name].get_default()
    return value


class RemoteAccount(BaseModel):
    id: int
    username: str
    display_name: str | None = None
    quota: int = 0
    used_quota: int = 0
    request_count: int = 0
    group: str | None = None

    @field_validator("quota", "used_quota", "request_count", mode="before")
    @classmethod
    def _null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_if_null(cls, value, info)


class RemoteApiKeyItem(BaseModel):
    id: int
    user_id: int = 0
    key: str
    name: str | None = None
    status: int = 0
    created_time: int = 0
    accessed_time: int = 0
    expired_time: int = 0
    remain_quota: int = 0
    unlimited_quota: bool = False
    used_quota: int = 0

    @field_validator(
        "user_id",
        "status",
        "created_time",
        "accessed_time",
        "expired_time",
        "remain_quota",
        "unlimited_quota",
        "used_quota",
        mode="before",
    )
    @classmethod
    def _null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_if_null(cls, value, info)


def _is_successful(raw: Any) -> bool:
    return isinstance(raw, dict) and raw.get("success") is True


def _bare_array(data: Any) -> list[Any] | None:
    return data if isinstance(data, list) else None


def _nested_array(field: str) -> Callable[[Any], list[Any] | None]:
    def match(data: Any) -> list[Any] | None:
        if isinstance(data, dict) and isinstance(data.get(field), list):
            return data[field]
        return None

    match.__name__ = f"_{field}_array"
    return match


# Checked in order; the first matcher returning a list wins.
API_KEY_ENVELOPES: Sequence[Callable[[Any], list[Any] | None]] = (
    _bare_array,
    _nested_array("items"),
    _nested_array("records"),
    _nested_array("data"),
)


def extract_api_key_items(data: Any) -> list[Any] | None:
    """Return the raw key items from the first matching envelope, or None."""
    for matcher in API_KEY_ENVELOPES:
        items = matcher(data)
        if items is not None:
            return items
    return None


def to_account_info(remote: RemoteAccount) -> AccountInfo:
    return AccountInfo(
        remote_id=remote.id,
        username=remote.username,
        display_name=remote.display_name or "",
        quota_total=remote.quota,
        quota_used=remote.used_quota,
        request_count=remote.request_count,
        group=remote.group or "",
    )


def to_api_key_record(remote: RemoteApiKeyItem) -> ApiKeyRecord:
    return ApiKeyRecord(
        id=remote.id,
        owner_remote_id=remote.user_id,
        secret_value=remote.key,
        label=remote.name or "",
        enabled=remote.status == TOKEN_STATUS_ENABLED,
        status=remote.status,
        created_at=remote.created_time,
        accessed_at=remote.accessed_time,
        expires_at=remote.expired_time,
        quota_remaining=remote.remain_quota,
        quota_used=remote.used_quota,
        unlimited_quota=remote.unlimited_quota,
    )


def parse_account_info(raw: Any) -> Normalized[AccountInfo | None]:
    if not _is_successful(raw) or not isinstance(raw.get("data"), dict):
        return Normalized(NormalizationStatus.UNSUCCESSFUL, None, _remote_message(raw))
    try:
        remote = RemoteAccount.model_validate(raw["data"])
    except ValidationError as exc:
        return Normalized(NormalizationStatus.MALFORMED, None, _summarize(exc))
    return Normalized(NormalizationStatus.OK, to_account_info(remote))


def parse_api_key_list(raw: Any) -> Normalized[list[ApiKeyRecord]]:
    """Map a key listing payload, whatever its envelope, to canonical records.

    An unrecognized envelope produces an empty list with status ``unmatched``;
    public callers treat that the same as a site without keys.
    """
    if not _is_successful(raw):
        return Normalized(NormalizationStatus.UNSUCCESSFUL, [], _remote_message(raw))

    items = extract_api_key_items(raw.get("data"))
    if items is None:
        return Normalized(NormalizationStatus.UNMATCHED, [], "No recognized key list envelope")

    try:
        records = [to_api_key_record(RemoteApiKeyItem.model_validate(item)) for item in items]
    except ValidationError as exc:
        return Normalized(NormalizationStatus.MALFORMED, [], _summarize(exc))
    return Normalized(NormalizationStatus.OK, records)


def parse_check_in(raw: Any) -> CheckInOutcome:
    if not isinstance(raw, dict):
        return CheckInOutcome(
            succeeded=False,
            message="Unexpected response format",
            error_code=ErrorCode.CHECKIN_FAILED,
        )
    succeeded = raw.get("success") is True
    message = raw.get("message")
    return CheckInOutcome(
        succeeded=succeeded,
        message=message if isinstance(message, str) else "",
        error_code=None if succeeded else ErrorCode.CHECKIN_FAILED,
    )


def _remote_message(raw: Any) -> str | None:
    if isinstance(raw, dict) and isinstance(raw.get("message"), str) and raw["message"]:
        return raw["message"]
    return None


def _summarize(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


__all__ = [
    "API_KEY_ENVELOPES",
    "NormalizationStatus",
    "Normalized",
    "extract_api_key_items",
    "parse_account_info",
    "parse_api_key_list",
    "parse_check_in",
]
