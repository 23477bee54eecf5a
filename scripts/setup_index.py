#!/usr/bin/env python3
"""Create the product index if needed and print its stats.

Usage:
    python scripts/setup_index.py
"""

import asyncio
import logging
import sys

from app.main import build_qdrant_client, build_vector_store

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


async def main() -> int:
    qdrant_client = build_qdrant_client()
    vector_store = build_vector_store(qdrant_client)
    try:
        created = await vector_store.ensure_index()
        stats = await vector_store.get_index_stats()
    except Exception as e:
        logger.error("Index setup failed: %s", e)
        return 1
    finally:
        await qdrant_client.close()

    logger.info(
        "Index '%s' %s: %s points, status %s",
        stats["collection_name"],
        "created" if created else "already present",
        stats["points_count"],
        stats["status"],
    )
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
