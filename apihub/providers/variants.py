"""Provider variant profiles.

Each supported gateway fork names its per-user header and its check-in route
differently. ``resolve`` turns a variant into the profile the request builder
needs. Values outside the known set resolve to the fallback variant's profile
(``new-api`` unless the caller overrides it).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ProviderVariant(str, Enum):
    NEW_API = "new-api"
    VELOERA = "veloera"
    VOAPI = "voapi"
    ONE_HUB = "one-hub"

    @classmethod
    def coerce(cls, value: ProviderVariant | str | None) -> ProviderVariant | str | None:
        """Return the enum member for a known value, else the value unchanged."""
        if value is None or isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return value


@dataclass(frozen=True)
class ProviderProfile:
    variant: ProviderVariant
    user_header_name: str | None
    check_in_path: str


DEFAULT_VARIANT = ProviderVariant.NEW_API

_PROFILES: dict[ProviderVariant, ProviderProfile] = {
    ProviderVariant.NEW_API: ProviderProfile(
        ProviderVariant.NEW_API, "new-api-user", "/api/user/check_in"
    ),
    ProviderVariant.VELOERA: ProviderProfile(
        ProviderVariant.VELOERA, "veloera-user", "/api/user/check_in"
    ),
    ProviderVariant.VOAPI: ProviderProfile(
        ProviderVariant.VOAPI, "voapi-user", "/api/user/clock_in"
    ),
    # one-hub has no per-user scoping header
    ProviderVariant.ONE_HUB: ProviderProfile(
        ProviderVariant.ONE_HUB, None, "/api/user/check_in"
    ),
}


def resolve(
    variant: ProviderVariant | str | None,
    fallback: ProviderVariant | str = DEFAULT_VARIANT,
) -> ProviderProfile:
    """Return the profile for ``variant``, or the fallback's for unknown values."""

    known = ProviderVariant.coerce(variant)
    if isinstance(known, ProviderVariant):
        return _PROFILES[known]

    fallback_variant = ProviderVariant.coerce(fallback)
    if not isinstance(fallback_variant, ProviderVariant):
        fallback_variant = DEFAULT_VARIANT
    return _PROFILES[fallback_variant]


__all__ = ["DEFAULT_VARIANT", "ProviderProfile", "ProviderVariant", "resolve"]
