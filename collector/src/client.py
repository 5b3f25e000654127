"""
Async HTTP client for the solar monitoring API.

Wraps an httpx.AsyncClient and exposes the three calls the collector needs:

- list_sites(): site ids of the account, sorted by name.
- get_daily_energy(site_id, day): one-day energyDetails query.
- get_lifetime_energy(site_id, day): one-day cumulative meters query.

Every failure (network error, non-2xx status, non-JSON body, missing
structure) is logged and re-raised as UpstreamError. There is no retry;
a failed run is retried by the scheduler on its next interval.

The API key travels as the ``api_key`` query parameter and is never logged.

CHANGELOG:
- 2026-10-19: Make site page size configurable
- 2026-10-19: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Any

import httpx

from collector.src.errors import UpstreamError
from collector.src.models import DailyEnergy, LifetimeEnergy, SiteId
from collector.src.normalizer import extract_readings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S: float = 30.0
"""Per-request timeout in seconds."""

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(day: date | datetime) -> str:
    """Format *day* as the API's ``YYYY-MM-DD HH:MM:SS`` timestamp.

    A plain date is taken at midnight; a datetime keeps its time of day.
    """
    if not isinstance(day, datetime):
        day = datetime.combine(day, time.min)
    return day.strftime(TIMESTAMP_FORMAT)


class MonitoringClient:
    """Client for the site listing and energy endpoints of the monitoring API.

    Args:
        api_key: Account API key sent as the ``api_key`` query parameter.
        base_url: API root, e.g. ``https://monitoringapi.solaredge.com``.
        site_page_size: ``size`` parameter of the site listing request.
        timeout_s: Request timeout in seconds (ignored when *http_client*
            is supplied).
        http_client: Optional pre-built httpx.AsyncClient. When omitted the
            client creates and owns one.

    Usage::

        async with MonitoringClient(api_key="KEY", base_url=url) as client:
            site_ids = await client.list_sites()
            daily = await client.get_daily_energy(site_ids[0], day)
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        site_page_size: int = 5,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._site_page_size = site_page_size
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout_s, verify=True)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> MonitoringClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def list_sites(self) -> list[SiteId]:
        """Return the ids of every site of the account, sorted by name.

        Raises:
            UpstreamError: On any request failure or malformed response.
        """
        payload = await self._get_json(
            "/sites/list",
            {
                "size": self._site_page_size,
                "sortProperty": "name",
                "sortOrder": "ASC",
            },
            endpoint="sites/list",
        )
        try:
            sites = payload["sites"]["site"]
            site_ids = [site["id"] for site in sites]
        except (KeyError, TypeError) as exc:
            logger.error("sites/list response is missing sites.site[].id")
            raise UpstreamError("sites/list: unexpected response shape") from exc

        logger.info("Found %d sites", len(site_ids))
        return site_ids

    async def get_daily_energy(
        self,
        site_id: SiteId,
        day: date | datetime,
    ) -> DailyEnergy:
        """Fetch the five daily energy quantities of one site, in kWh.

        Raises:
            UpstreamError: On any request failure or malformed response.
        """
        payload = await self._get_energy(site_id, day, path="energyDetails")
        details = self._unwrap(payload, "energyDetails", site_id)
        readings = extract_readings(details, kind_field="type")
        return DailyEnergy(**readings.model_dump())

    async def get_lifetime_energy(
        self,
        site_id: SiteId,
        day: date | datetime,
    ) -> LifetimeEnergy:
        """Fetch the five lifetime (cumulative) energy quantities, in kWh.

        Raises:
            UpstreamError: On any request failure or malformed response.
        """
        payload = await self._get_energy(site_id, day, path="meters")
        details = self._unwrap(payload, "meterEnergyDetails", site_id)
        readings = extract_readings(details, kind_field="meterType")
        return LifetimeEnergy(**readings.model_dump())

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_energy(
        self,
        site_id: SiteId,
        day: date | datetime,
        *,
        path: str,
    ) -> dict[str, Any]:
        """Issue a single-bucket DAY query against a site energy endpoint."""
        ts = format_timestamp(day)
        return await self._get_json(
            f"/site/{site_id}/{path}",
            {"timeUnit": "DAY", "startTime": ts, "endTime": ts},
            endpoint=f"site/{site_id}/{path}",
        )

    @staticmethod
    def _unwrap(payload: dict[str, Any], key: str, site_id: SiteId) -> Any:
        """Return ``payload[key]`` or raise UpstreamError when absent."""
        if not isinstance(payload, dict) or key not in payload:
            logger.error("Response for site %s has no '%s' object", site_id, key)
            raise UpstreamError(f"site {site_id}: response has no '{key}' object")
        return payload[key]

    async def _get_json(
        self,
        path: str,
        params: dict[str, Any],
        *,
        endpoint: str,
    ) -> Any:
        """GET ``{base_url}{path}`` and decode the JSON body.

        Args:
            path: Request path below the base URL.
            params: Query parameters (the API key is added here).
            endpoint: Short endpoint label for logs and error messages.

        Raises:
            UpstreamError: Wrapping the underlying httpx or decode error.
        """
        url = f"{self._base_url}{path}"
        try:
            response = await self._http.get(
                url,
                params={**params, "api_key": self._api_key},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error("Error fetching %s: HTTP %d", endpoint, status)
            raise UpstreamError(f"{endpoint}: HTTP {status}") from exc
        except httpx.HTTPError as exc:
            logger.error("Error fetching %s: %s", endpoint, type(exc).__name__)
            raise UpstreamError(f"{endpoint}: {type(exc).__name__}") from exc
        except ValueError as exc:
            logger.error("Error fetching %s: response is not valid JSON", endpoint)
            raise UpstreamError(f"{endpoint}: response is not valid JSON") from exc

        logger.debug("%s response: %s", endpoint, payload)
        return payload
