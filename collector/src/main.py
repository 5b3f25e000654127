"""
Collector entrypoint: aggregate one day of site energy and reconcile it.

Runs the pipeline list sites -> fetch daily + lifetime energy per site ->
sum -> reconcile with MongoDB, either once (default, for "yesterday" or the
``--date`` given) or on a fixed interval until SIGTERM/SIGINT.

- **Single run**: a failure is logged and the process exits with status 1
  so the external scheduler sees it.
- **Loop mode** (``--loop``, or RUN_INTERVAL_S > 0 without ``--date``): each
  iteration runs for the then-current "yesterday". A failed run is logged
  and the next interval tries again; the loop never crashes.

Structured JSON logging is used for all events. A HealthWriter instance, when
HEALTH_PATH is set, records the outcome of every run.

CHANGELOG:
- 2026-10-19: --date always means a single run; record health for any failure
- 2026-10-19: Add loop mode with graceful shutdown (STORY-010)
- 2026-10-19: Initial creation (STORY-008)

TODO:
- None
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import hashlib
import json
import logging
import signal
import sys
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from collector.src.aggregator import aggregate, format_record_date
from collector.src.errors import CollectorError
from collector.src.reconciler import reconcile

if TYPE_CHECKING:
    from collections.abc import Sequence

    from collector.src.client import MonitoringClient
    from collector.src.health import HealthWriter
    from collector.src.models import AggregatedEnergyRecord, ReconcileOutcome
    from collector.src.store import EnergyStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structured JSON logging for the collector.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    # httpx logs full request URLs at INFO, which include the api_key.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _masked_token(value: str | None) -> str:
    """Return a short non-reversible token fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


def _redact_uri(uri: str) -> str:
    """Hide the userinfo part of a connection URI."""
    scheme, sep, rest = uri.partition("://")
    if not sep or "@" not in rest:
        return uri
    return f"{scheme}://***@{rest.rsplit('@', 1)[1]}"


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: object) -> None:
    """Log a config summary at startup, excluding secrets.

    The API key is reduced to a fingerprint and MongoDB credentials are
    redacted from the URI.

    Args:
        settings: A CollectorSettings instance (or any object with the same attrs).
    """
    logger.info(
        "Collector starting with config: "
        "api_base_url=%s, site_page_size=%s, request_timeout_s=%s, "
        "site_concurrency=%s, mongodb_uri=%s, mongodb_database=%s, "
        "mongodb_collection=%s, timezone=%s, run_interval_s=%s, "
        "health_path=%s, api_key_masked=%s",
        settings.api_base_url,  # type: ignore[union-attr]
        settings.site_page_size,  # type: ignore[union-attr]
        settings.request_timeout_s,  # type: ignore[union-attr]
        settings.site_concurrency,  # type: ignore[union-attr]
        _redact_uri(settings.mongodb_uri),  # type: ignore[union-attr]
        settings.mongodb_database,  # type: ignore[union-attr]
        settings.mongodb_collection,  # type: ignore[union-attr]
        settings.timezone or "local",  # type: ignore[union-attr]
        settings.run_interval_s,  # type: ignore[union-attr]
        settings.health_path or "disabled",  # type: ignore[union-attr]
        _masked_token(settings.api_key),  # type: ignore[union-attr]
    )


def default_run_date(timezone: str = "", *, now: datetime | None = None) -> date:
    """Return yesterday's date on the caller's clock.

    Args:
        timezone: IANA timezone name; empty uses the host's local time.
        now: Injected current time (for tests).
    """
    if now is None:
        now = datetime.now(ZoneInfo(timezone)) if timezone else datetime.now()
    return now.date() - timedelta(days=1)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


async def collect_day(
    client: MonitoringClient,
    store: EnergyStore,
    day: date | datetime,
    *,
    max_concurrency: int = 1,
) -> tuple[AggregatedEnergyRecord, ReconcileOutcome]:
    """Aggregate *day* and reconcile it, returning the record and outcome.

    Raises:
        UpstreamError: If any monitoring API call fails (store untouched).
        PersistenceError: If the store lookup or write fails.
    """
    record = await aggregate(client, day, max_concurrency=max_concurrency)
    outcome = await reconcile(store, record)
    logger.info("Run for %s finished: %s", record.date, outcome)
    return record, outcome


async def run_aggregation(
    client: MonitoringClient,
    store: EnergyStore,
    day: date | datetime,
    *,
    max_concurrency: int = 1,
) -> AggregatedEnergyRecord:
    """Aggregate and reconcile *day*; return the computed record.

    The record is returned whether it was inserted, left unchanged, or used
    to overwrite the stored document. Errors propagate unmodified.
    """
    record, _ = await collect_day(
        client, store, day, max_concurrency=max_concurrency
    )
    return record


# ---------------------------------------------------------------------------
# Single-iteration function (easily testable)
# ---------------------------------------------------------------------------


async def _run_once(
    *,
    client: MonitoringClient,
    store: EnergyStore,
    day: date,
    max_concurrency: int,
    health: HealthWriter | None,
) -> bool:
    """Execute one collect cycle for loop mode.

    Catches all exceptions so that the caller's loop is never broken, and
    updates the health file with the result.

    Returns:
        True if the run succeeded, False otherwise.
    """
    record_date = format_record_date(day)
    try:
        _, outcome = await collect_day(
            client, store, day, max_concurrency=max_concurrency
        )
    except Exception:
        logger.error("Run for %s failed", record_date, exc_info=True)
        if health is not None:
            health.record_failure(record_date)
        return False

    if health is not None:
        health.record_success(record_date, str(outcome))
    return True


# ---------------------------------------------------------------------------
# Loop runner
# ---------------------------------------------------------------------------


async def run_loop(
    *,
    client: MonitoringClient,
    store: EnergyStore,
    run_interval_s: float,
    shutdown_event: asyncio.Event,
    timezone: str = "",
    max_concurrency: int = 1,
    health: HealthWriter | None = None,
) -> None:
    """Collect "yesterday" every *run_interval_s* seconds until shutdown.

    Args:
        client: Monitoring API client.
        store: Opened EnergyStore.
        run_interval_s: Seconds between run starts.
        shutdown_event: Event to signal graceful shutdown.
        timezone: IANA timezone for computing yesterday; empty means local.
        max_concurrency: Maximum sites fetched at once.
        health: HealthWriter instance, or None to skip health writes.
    """
    logger.info("Collect loop started (interval=%ss)", run_interval_s)
    while not shutdown_event.is_set():
        await _run_once(
            client=client,
            store=store,
            day=default_run_date(timezone),
            max_concurrency=max_concurrency,
            health=health,
        )
        # Use wait with timeout so we can check shutdown between sleeps
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(
                shutdown_event.wait(),
                timeout=run_interval_s,
            )
    logger.info("Collect loop stopped")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def _parse_date(value: str) -> date:
    """argparse type for ``YYYY-MM-DD`` dates."""
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"invalid date '{value}', expected YYYY-MM-DD"
        ) from exc


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="energy-collector",
        description=(
            "Aggregate daily site energy from the monitoring API "
            "and store it in MongoDB."
        ),
    )
    parser.add_argument(
        "--date",
        type=_parse_date,
        default=None,
        help=(
            "Day to collect (YYYY-MM-DD). Defaults to yesterday. Always a "
            "single run, even when RUN_INTERVAL_S is set; not allowed with --loop."
        ),
    )
    parser.add_argument(
        "--loop",
        action="store_true",
        help="Keep running every RUN_INTERVAL_S seconds (default 86400).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log raw API responses.",
    )
    args = parser.parse_args(argv)
    if args.date is not None and args.loop:
        parser.error("--date cannot be combined with --loop")
    return args


async def async_main(argv: Sequence[str] | None = None) -> None:
    """Async entrypoint: load config, build components, run once or loop.

    In loop mode SIGTERM/SIGINT trigger graceful shutdown.
    """
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.debug else logging.INFO)

    from collector.src.client import MonitoringClient
    from collector.src.config import CollectorSettings
    from collector.src.health import HealthWriter
    from collector.src.store import EnergyStore

    settings = CollectorSettings()
    log_config_summary(settings)

    health = HealthWriter(settings.health_path) if settings.health_path else None
    loop_mode = args.loop or (args.date is None and settings.run_interval_s > 0)

    async with (
        MonitoringClient(
            api_key=settings.api_key,
            base_url=settings.api_base_url,
            site_page_size=settings.site_page_size,
            timeout_s=settings.request_timeout_s,
        ) as client,
        EnergyStore(
            settings.mongodb_uri,
            database=settings.mongodb_database,
            collection=settings.mongodb_collection,
        ) as store,
    ):
        await store.ensure_indexes()

        if not loop_mode:
            day = args.date or default_run_date(settings.timezone)
            try:
                _, outcome = await collect_day(
                    client, store, day, max_concurrency=settings.site_concurrency
                )
            except Exception:
                if health is not None:
                    health.record_failure(format_record_date(day))
                raise
            if health is not None:
                health.record_success(format_record_date(day), str(outcome))
            return

        shutdown_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda: _handle_signal(shutdown_event),
            )

        await run_loop(
            client=client,
            store=store,
            run_interval_s=settings.run_interval_s or 86400,
            shutdown_event=shutdown_event,
            timezone=settings.timezone,
            max_concurrency=settings.site_concurrency,
            health=health,
        )


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event.

    Args:
        shutdown_event: The event to set for graceful shutdown.
    """
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main(argv: Sequence[str] | None = None) -> None:
    """Synchronous entrypoint for the collector."""
    try:
        asyncio.run(async_main(argv))
    except CollectorError:
        logger.error("Collector run failed", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
