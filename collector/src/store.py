"""
MongoDB persistence for daily aggregated energy records.

One document per calendar day, keyed by its ``date`` string. The collector
needs three operations per run (lookup by date, insert, update by _id) plus
a one-time unique index on ``date``.

Operations:
- ensure_indexes(): Create the unique ``date`` index if missing.
- find_by_date(day): Return the stored document for a day, or None.
- insert(record): Insert a new daily document.
- update_by_id(doc_id, record): $set every record field on an existing doc.

Every pymongo failure is re-raised as PersistenceError. Supports the async
context manager protocol for clean connection handling.

CHANGELOG:
- 2026-10-19: Add unique date index
- 2026-10-19: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pymongo import ASCENDING, AsyncMongoClient
from pymongo.errors import PyMongoError

from collector.src.errors import PersistenceError

if TYPE_CHECKING:
    from pymongo.asynchronous.collection import AsyncCollection

    from collector.src.models import AggregatedEnergyRecord

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "energy_data"
DEFAULT_COLLECTION = "carbonEnergyData"
DATE_INDEX_NAME = "date_idx"


class EnergyStore:
    """Async MongoDB collection of AggregatedEnergyRecord documents.

    Args:
        uri: MongoDB connection string.
        database: Database name.
        collection: Collection name.
        client: Optional pre-built AsyncMongoClient. When omitted the store
            creates one on :meth:`open` and closes it on :meth:`close`.

    Usage::

        async with EnergyStore("mongodb://localhost:27017") as store:
            existing = await store.find_by_date("2026-10-18")
    """

    def __init__(
        self,
        uri: str,
        *,
        database: str = DEFAULT_DATABASE,
        collection: str = DEFAULT_COLLECTION,
        client: AsyncMongoClient | None = None,
    ) -> None:
        self._uri = uri
        self._database = database
        self._collection_name = collection
        self._client = client
        self._owns_client = client is None
        self._collection: AsyncCollection | None = None

    async def open(self) -> None:
        """Create the client if needed and bind the collection."""
        if self._client is None:
            self._client = AsyncMongoClient(self._uri, tz_aware=True)
        self._collection = self._client[self._database][self._collection_name]

    async def close(self) -> None:
        """Close the MongoDB client if this store created it."""
        if self._client is not None and self._owns_client:
            await self._client.close()
            self._client = None
        self._collection = None

    async def __aenter__(self) -> EnergyStore:
        """Enter async context manager: open the store."""
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit async context manager: close the store."""
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ensure_indexes(self) -> None:
        """Create a unique ascending index on ``date``."""
        collection = self._require_collection()
        try:
            await collection.create_index(
                [("date", ASCENDING)],
                unique=True,
                name=DATE_INDEX_NAME,
            )
        except PyMongoError as exc:
            logger.error("Failed to create index on %s", self._collection_name)
            raise PersistenceError(f"create_index failed: {exc}") from exc

    async def find_by_date(self, day: str) -> dict[str, Any] | None:
        """Return the stored document for *day* (``YYYY-MM-DD``), or None."""
        collection = self._require_collection()
        try:
            return await collection.find_one({"date": day})
        except PyMongoError as exc:
            logger.error("Lookup of %s failed", day)
            raise PersistenceError(f"find_one(date={day}) failed: {exc}") from exc

    async def insert(self, record: AggregatedEnergyRecord) -> Any:
        """Insert *record* as a new document and return its ``_id``."""
        collection = self._require_collection()
        try:
            result = await collection.insert_one(record.to_document())
        except PyMongoError as exc:
            logger.error("Insert of %s failed", record.date)
            raise PersistenceError(f"insert_one(date={record.date}) failed: {exc}") from exc
        return result.inserted_id

    async def update_by_id(self, doc_id: Any, record: AggregatedEnergyRecord) -> None:
        """Overwrite the fields of document *doc_id* with *record*'s values."""
        collection = self._require_collection()
        try:
            await collection.update_one(
                {"_id": doc_id},
                {"$set": record.to_document()},
            )
        except PyMongoError as exc:
            logger.error("Update of %s failed", record.date)
            raise PersistenceError(f"update_one(date={record.date}) failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _require_collection(self) -> AsyncCollection:
        assert self._collection is not None, "Store not opened. Call open() or use async with."
        return self._collection
