"""
Reconciliation of a freshly computed daily record against the store.

The monitoring API may revise figures for a day that was already collected
(late meter corrections). Reconciling makes re-runs idempotent when nothing
changed and lets corrections overwrite the stored document when something
did:

- no stored document for the date: insert;
- stored document matches on every shared field: no write;
- any shared field differs: $set the new values on the stored document
  (same _id).

Only keys present on both documents are compared. Fields only on the stored
document (``_id`` and anything else) and fields the stored document lacks
(written under an older schema) are ignored.

CHANGELOG:
- 2026-10-19: Compare only keys present on both documents
- 2026-10-19: Initial creation (STORY-006)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from collector.src.models import ReconcileOutcome

if TYPE_CHECKING:
    from collector.src.models import AggregatedEnergyRecord
    from collector.src.store import EnergyStore

logger = logging.getLogger(__name__)


def find_discrepancies(
    stored: Mapping[str, Any],
    new: Mapping[str, Any],
) -> dict[str, tuple[Any, Any]]:
    """Return ``{field: (stored_value, new_value)}`` for every differing field.

    Only keys present on both *stored* and *new* are compared. Values are
    compared with ``==``.
    """
    diffs: dict[str, tuple[Any, Any]] = {}
    for key, value in new.items():
        if key not in stored:
            continue
        if stored[key] != value:
            diffs[key] = (stored[key], value)
    return diffs


async def reconcile(
    store: EnergyStore,
    record: AggregatedEnergyRecord,
) -> ReconcileOutcome:
    """Insert, keep, or overwrite the stored document for ``record.date``.

    Args:
        store: Opened EnergyStore (or any object with async
            ``find_by_date``, ``insert`` and ``update_by_id``).
        record: The freshly computed aggregate.

    Returns:
        The action taken.

    Raises:
        PersistenceError: If the lookup or the write fails.
    """
    existing = await store.find_by_date(record.date)

    if existing is None:
        await store.insert(record)
        logger.info("No stored data for %s, inserted aggregate", record.date)
        return ReconcileOutcome.INSERTED

    diffs = find_discrepancies(existing, record.to_document())
    if not diffs:
        logger.info("Data for %s already stored and unchanged", record.date)
        return ReconcileOutcome.UNCHANGED

    logger.info(
        "Data discrepancy for %s in %d fields: %s",
        record.date,
        len(diffs),
        diffs,
    )
    await store.update_by_id(existing["_id"], record)
    logger.info("Updated stored data for %s with new values", record.date)
    return ReconcileOutcome.UPDATED
