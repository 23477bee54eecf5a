"""Catalog ingestion pipeline: fetch, normalize, embed, and store products."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from app.errors import RecordStorageError, SkinMatchError
from app.models.domain import SyncResult, SyncStatus
from app.services.catalog_client import CatalogClient
from app.services.embedder import EmbeddingService
from app.services.normalizer import normalize_record, to_indexed_product
from app.services.vector_store import VectorStore

logger = logging.getLogger(__name__)


class IngestionPipeline:
    def __init__(
        self,
        catalog_client: CatalogClient,
        embedder: EmbeddingService,
        vector_store: VectorStore,
    ) -> None:
        self.catalog = catalog_client
        self.embedder = embedder
        self.vector_store = vector_store
        self.last_sync: datetime | None = None

    async def _data_exists(self) -> bool:
        """True when the index already holds at least one product."""
        try:
            return await self.vector_store.has_products()
        except Exception as e:
            logger.warning("Could not probe index for existing data, assuming empty: %s", e)
            return False

    async def store_record(self, raw: dict[str, Any]) -> bool:
        """Normalize, embed, and write one catalog record.

        Returns False when a product with the same identifier is already
        stored, True when it was written.  Any failure is logged and raised as
        :class:`RecordStorageError`.
        """
        try:
            record = normalize_record(raw)
        except RecordStorageError as e:
            logger.error("Invalid catalog record, aborting sync: %s", e)
            raise

        try:
            if await self.vector_store.product_exists(record.product_id):
                logger.info("Product already exists: %s (%s)", record.name, record.product_id)
                return False

            vector = await asyncio.to_thread(self.embedder.embed_effects, record.effects)
            await self.vector_store.put_product(to_indexed_product(record, vector))
        except Exception as e:
            logger.error("Failed to store product %s: %s", record.product_id, e)
            raise RecordStorageError(
                record.product_id, f"Failed to store product {record.product_id}: {e}"
            ) from e

        logger.info("Stored product: %s (%s)", record.name, record.product_id)
        return True

    async def run_sync(self, *, force: bool = False) -> SyncResult:
        """Sync the catalog into the index, raising on failure.

        1. Skip entirely if the index already has data (unless force=True)
        2. Fetch every record from the catalog source
        3. Ensure the index exists
        4. Store each record that isn't already indexed, in order
        """
        logger.info("Starting catalog sync (force=%s)...", force)

        if not force and await self._data_exists():
            logger.info("Data already exists in the index. Use force=True to re-sync.")
            return SyncResult(status="skipped", message="Data already exists in the index")

        records = await self.catalog.fetch_products()
        return await self.ingest_products(records)

    async def sync(self, *, force: bool = False) -> SyncResult:
        """Like :meth:`run_sync` but reports failures as a ``failed`` result."""
        try:
            return await self.run_sync(force=force)
        except SkinMatchError as e:
            logger.error("Sync failed: %s", e)
            return SyncResult(status="failed", message=str(e))
        except Exception as e:
            logger.exception("Sync failed unexpectedly")
            return SyncResult(status="failed", message=str(e) or type(e).__name__)

    async def get_sync_status(self) -> SyncStatus:
        count = await self.vector_store.count_products()
        return SyncStatus(products_count=count, last_sync=self.last_sync)

    async def ingest_products(self, records: list[dict[str, Any]]) -> SyncResult:
        """Ensure the index and store *records* sequentially.

        Used by :meth:`run_sync` after fetching, and directly for records read
        from an exported JSON file.  The first storage failure aborts the
        remaining records; products written before it stay in the index.
        """
        logger.info("Processing %d products...", len(records))
        await self.vector_store.ensure_index()

        new_count = 0
        skipped_count = 0
        for raw in records:
            if await self.store_record(raw):
                new_count += 1
            else:
                skipped_count += 1

        self.last_sync = datetime.now(timezone.utc)
        logger.info("Sync completed: %d new, %d skipped.", new_count, skipped_count)
        return SyncResult(
            status="synced",
            message=f"Synced {new_count} new products",
            new_count=new_count,
            skipped_count=skipped_count,
            total_count=new_count,
        )
