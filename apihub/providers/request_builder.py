"""Outbound request construction for remote gateway sites."""

from __future__ import annotations

from enum import Enum

from .base import SiteCredential
from .variants import DEFAULT_VARIANT, ProviderVariant, resolve

API_KEY_PAGE = 0
API_KEY_PAGE_SIZE = 10

ACCOUNT_INFO_PATH = "/api/user/self"
API_KEYS_PATH = f"/api/token/?p={API_KEY_PAGE}&size={API_KEY_PAGE_SIZE}"


class SiteOperation(str, Enum):
    ACCOUNT_INFO = "account_info"
    API_KEYS = "api_keys"
    CHECK_IN = "check_in"

    @property
    def method(self) -> str:
        return "POST" if self is SiteOperation.CHECK_IN else "GET"


def build_headers(
    credential: SiteCredential,
    fallback: ProviderVariant | str = DEFAULT_VARIANT,
) -> dict[str, str]:
    """Return auth headers, adding the per-user header where the variant uses one."""

    headers = {
        "Authorization": f"Bearer {credential.access_token}",
        "Content-Type": "application/json",
    }
    profile = resolve(credential.variant, fallback)
    if profile.user_header_name:
        headers[profile.user_header_name] = str(credential.remote_user_id)
    return headers


def build_url(
    credential: SiteCredential,
    operation: SiteOperation,
    fallback: ProviderVariant | str = DEFAULT_VARIANT,
) -> str:
    """Join the site's base URL (used verbatim) with the operation's path."""

    if operation is SiteOperation.ACCOUNT_INFO:
        path = ACCOUNT_INFO_PATH
    elif operation is SiteOperation.API_KEYS:
        path = API_KEYS_PATH
    else:
        path = resolve(credential.variant, fallback).check_in_path
    return f"{credential.base_url}{path}"


__all__ = [
    "API_KEY_PAGE",
    "API_KEY_PAGE_SIZE",
    "SiteOperation",
    "build_headers",
    "build_url",
]
