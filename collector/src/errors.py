"""
Exception taxonomy for the daily energy collector.

Fetch-layer failures surface as UpstreamError, store failures as
PersistenceError. Both propagate unmodified to the caller of a run; nothing
in the pipeline retries or swallows them.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-002)

TODO:
- None
"""


class CollectorError(Exception):
    """Base class for all collector errors."""


class UpstreamError(CollectorError):
    """Monitoring API call failed or returned an unexpected payload.

    Covers network errors, non-2xx responses, non-JSON bodies, and
    responses missing the expected structure.
    """


class PersistenceError(CollectorError):
    """A MongoDB lookup, write, or index operation failed."""
