"""Dashboard totals gathered by refreshing many sites at once."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from pydantic import BaseModel, Field

from apihub.providers.base import RefreshResult, SiteCredential
from apihub.providers.site_adapter import SiteAdapter

logger = logging.getLogger("apihub.summary")


class SiteSummary(BaseModel):
    site: str
    reachable: bool
    key_count: int
    result: RefreshResult


class DashboardSummary(BaseModel):
    site_count: int = 0
    reachable_count: int = 0
    key_count: int = 0
    quota_total: int = 0
    quota_used: int = 0
    sites: list[SiteSummary] = Field(default_factory=list)


async def summarize_sites(
    adapter: SiteAdapter,
    credentials: Sequence[SiteCredential],
    max_concurrency: int = 8,
) -> DashboardSummary:
    """Refresh every site concurrently and total the results.

    Per-site entries keep the input order. Unlimited quotas (negative totals)
    are left out of ``quota_total``.
    """
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def _refresh(credential: SiteCredential) -> RefreshResult:
        async with semaphore:
            return await adapter.refresh(credential)

    results = await asyncio.gather(*(_refresh(credential) for credential in credentials))

    summary = DashboardSummary(site_count=len(credentials))
    for credential, result in zip(credentials, results):
        account = result.account_info
        entry = SiteSummary(
            site=credential.label,
            reachable=account is not None,
            key_count=len(result.api_keys),
            result=result,
        )
        summary.sites.append(entry)
        summary.key_count += entry.key_count
        if account is None:
            continue
        summary.reachable_count += 1
        summary.quota_used += account.quota_used
        if not account.unlimited:
            summary.quota_total += account.quota_total

    logger.info(
        "Dashboard summary computed",
        extra={
            "event": "dashboard_summary",
            "site_count": summary.site_count,
            "reachable_count": summary.reachable_count,
            "key_count": summary.key_count,
        },
    )
    return summary


__all__ = ["DashboardSummary", "SiteSummary", "summarize_sites"]
