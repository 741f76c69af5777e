"""Canonical site models shared by the adapter and its callers."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from apihub.core.exceptions import ErrorCode

from .variants import DEFAULT_VARIANT, ProviderVariant


class SiteCredential(BaseModel):
    """Connection details for one remote gateway, supplied per call."""

    base_url: str
    access_token: str
    remote_user_id: int | None = None
    variant: ProviderVariant | str = DEFAULT_VARIANT
    name: str = ""

    @field_validator("variant", mode="before")
    @classmethod
    def _coerce_variant(cls, value):
        if value is None:
            return DEFAULT_VARIANT
        return ProviderVariant.coerce(value)

    @model_validator(mode="after")
    def _require_user_id(self) -> SiteCredential:
        if self.variant != ProviderVariant.ONE_HUB and self.remote_user_id is None:
            raise ValueError("remote_user_id is required for this site variant")
        return self

    @property
    def label(self) -> str:
        """Identity used in logs; never includes the access token."""
        return self.name or self.base_url


class AccountInfo(BaseModel):
    remote_id: int
    username: str
    display_name: str = ""
    quota_total: int = 0
    quota_used: int = 0
    request_count: int = 0
    group: str = ""

    @property
    def unlimited(self) -> bool:
        return self.quota_total < 0


class ApiKeyRecord(BaseModel):
    id: int
    owner_remote_id: int = 0
    secret_value: str
    label: str = ""
    enabled: bool = False
    status: int = 0
    created_at: int = 0
    accessed_at: int = 0
    expires_at: int = 0
    quota_remaining: int = 0
    quota_used: int = 0
    unlimited_quota: bool = False


class CheckInOutcome(BaseModel):
    succeeded: bool
    message: str = ""
    error_code: ErrorCode | None = None


class RefreshResult(BaseModel):
    account_info: AccountInfo | None = None
    api_keys: list[ApiKeyRecord] = Field(default_factory=list)
