#!/usr/bin/env python3
"""Sync the product catalog into the vector index.

Usage:
    python scripts/sync_catalog.py
    python scripts/sync_catalog.py --force
    python scripts/sync_catalog.py --from-file data/n8n-export.json
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from app.config import settings
from app.errors import SkinMatchError, SourceUnavailableError
from app.main import build_qdrant_client, build_vector_store
from app.services.catalog_client import CatalogClient, extract_records
from app.services.embedder import EmbeddingService
from app.services.ingestion import IngestionPipeline

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


def load_export(path: Path) -> list[dict]:
    """Read records from an exported catalog JSON file (same shape as the webhook)."""
    try:
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
    except OSError as e:
        raise SourceUnavailableError(f"Cannot read catalog export {path}: {e}") from e
    except ValueError as e:
        raise SourceUnavailableError(f"Catalog export {path} is not valid JSON: {e}") from e
    return extract_records(data)


async def main(force: bool = False, from_file: Path | None = None) -> int:
    catalog_client = CatalogClient(
        url=settings.catalog_source_url,
        timeout=settings.catalog_timeout_seconds,
    )
    embedder = EmbeddingService(
        model_name=settings.embedding_model,
        dimension=settings.embedding_dimension,
        device=settings.embedding_device,
    )
    qdrant_client = build_qdrant_client()
    pipeline = IngestionPipeline(
        catalog_client=catalog_client,
        embedder=embedder,
        vector_store=build_vector_store(qdrant_client),
    )

    try:
        if from_file is not None:
            logger.info("Reading catalog export from %s", from_file)
            result = await pipeline.ingest_products(load_export(from_file))
        else:
            result = await pipeline.run_sync(force=force)
    except SkinMatchError as e:
        logger.error("Sync failed: %s", e)
        return 1
    finally:
        await catalog_client.close()
        await qdrant_client.close()

    logger.info(
        "%s: %d new, %d skipped (embedding source: %s)",
        result.message,
        result.new_count,
        result.skipped_count,
        embedder.source,
    )
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Sync the SkinMatch product catalog")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Sync even if the index already holds products",
    )
    parser.add_argument(
        "--from-file",
        type=Path,
        default=None,
        help="Ingest an exported catalog JSON file instead of calling the catalog source",
    )
    args = parser.parse_args()

    sys.exit(asyncio.run(main(force=args.force, from_file=args.from_file)))
