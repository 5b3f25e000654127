"""
Aggregation of per-site daily and lifetime energy into one daily record.

Lists the account's sites, fetches each site's daily and lifetime readings
for the requested day, and folds them into an explicit EnergyTotals
accumulator. Sites are fetched one at a time by default; a larger
``max_concurrency`` fetches up to that many sites at once. Contributions are
always folded in site-list order, so the result does not depend on which
fetch finishes first.

A failure in any site aborts the whole aggregation: the error propagates
unchanged, outstanding fetches are cancelled, and no record is produced.

CHANGELOG:
- 2026-10-19: Optional bounded concurrent site fetches
- 2026-10-19: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from functools import reduce
from typing import TYPE_CHECKING

from collector.src.models import (
    AggregatedEnergyRecord,
    DailyEnergy,
    EnergyReadings,
    LifetimeEnergy,
    SiteId,
)

if TYPE_CHECKING:
    from collector.src.client import MonitoringClient

logger = logging.getLogger(__name__)

SiteContribution = tuple[DailyEnergy, LifetimeEnergy]


def format_record_date(day: date | datetime) -> str:
    """Format *day* as the record key ``YYYY-MM-DD``."""
    if isinstance(day, datetime):
        day = day.date()
    return day.isoformat()


@dataclass(frozen=True)
class EnergyTotals:
    """Running daily and lifetime sums across sites.

    Immutable: :meth:`add` returns a new accumulator.
    """

    daily: EnergyReadings = field(default_factory=EnergyReadings)
    lifetime: EnergyReadings = field(default_factory=EnergyReadings)

    def add(self, contribution: SiteContribution) -> EnergyTotals:
        daily, lifetime = contribution
        return EnergyTotals(
            daily=self.daily + daily,
            lifetime=self.lifetime + lifetime,
        )


def sum_site_energy(
    contributions: Iterable[SiteContribution],
    day: date | datetime,
) -> AggregatedEnergyRecord:
    """Reduce per-site readings into an AggregatedEnergyRecord for *day*.

    Pure function. No contributions yields an all-zero record.
    """
    totals = reduce(EnergyTotals.add, contributions, EnergyTotals())
    return AggregatedEnergyRecord.from_readings(
        format_record_date(day),
        totals.daily,
        totals.lifetime,
    )


async def _fetch_site(
    client: MonitoringClient,
    site_id: SiteId,
    day: date | datetime,
) -> SiteContribution:
    """Fetch daily then lifetime readings for one site."""
    daily = await client.get_daily_energy(site_id, day)
    lifetime = await client.get_lifetime_energy(site_id, day)
    logger.debug(
        "Site %s: daily=%s lifetime=%s",
        site_id,
        daily.model_dump(),
        lifetime.model_dump(),
    )
    return daily, lifetime


async def _fetch_concurrently(
    client: MonitoringClient,
    site_ids: list[SiteId],
    day: date | datetime,
    max_concurrency: int,
) -> list[SiteContribution]:
    """Fetch up to *max_concurrency* sites at once; results in site-list order.

    On the first failure every outstanding fetch is cancelled and the error
    is re-raised.
    """
    semaphore = asyncio.Semaphore(max_concurrency)

    async def bounded(site_id: SiteId) -> SiteContribution:
        async with semaphore:
            return await _fetch_site(client, site_id, day)

    tasks = [asyncio.create_task(bounded(site_id)) for site_id in site_ids]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


async def aggregate(
    client: MonitoringClient,
    day: date | datetime,
    *,
    max_concurrency: int = 1,
) -> AggregatedEnergyRecord:
    """Compute the account-wide AggregatedEnergyRecord for *day*.

    Args:
        client: Monitoring API client bound to the account's API key.
        day: Calendar day to aggregate.
        max_concurrency: Maximum number of sites fetched at once. 1 keeps
            the fetches strictly sequential, in site-list order.

    Returns:
        The summed record; all zeros when the account has no sites.

    Raises:
        UpstreamError: If listing sites or any site fetch fails.
        ValueError: If *max_concurrency* is less than 1.
    """
    if max_concurrency < 1:
        raise ValueError("max_concurrency must be >= 1")

    site_ids = await client.list_sites()
    logger.info(
        "Aggregating %d sites for %s", len(site_ids), format_record_date(day)
    )

    if max_concurrency == 1:
        contributions = [
            await _fetch_site(client, site_id, day) for site_id in site_ids
        ]
    else:
        contributions = await _fetch_concurrently(
            client, site_ids, day, max_concurrency
        )

    record = sum_site_energy(contributions, day)
    logger.info("Aggregate data: %s", record.to_document())
    return record
