"""Nearest-neighbour product lookup for profile vectors."""

import asyncio
import logging
from collections.abc import Sequence

from app.models.domain import KnnHit, ProductMatch, SearchOutcome
from app.services.embedder import EmbeddingService
from app.services.similarity import to_similarity
from app.services.vector_store import VectorStore

logger = logging.getLogger(__name__)


def _to_match(hit: KnnHit) -> ProductMatch:
    payload = hit.payload
    return ProductMatch(
        product_id=hit.product_id,
        name=payload.get("name") or "",
        brand=payload.get("brand") or "",
        category=payload.get("category") or "",
        effects=payload.get("effects") or [],
        similarity=to_similarity(hit.distance),
    )


class QueryService:
    """Read-only access to the product index."""

    def __init__(self, embedder: EmbeddingService, vector_store: VectorStore) -> None:
        self.embedder = embedder
        self.vector_store = vector_store

    async def search(self, vector: list[float], limit: int = 10) -> SearchOutcome:
        """KNN search with ``k = limit``, ranked by descending similarity.

        Failures are not raised; they come back as ``SearchOutcome.error``
        with no matches.
        """
        if limit < 1:
            return SearchOutcome()

        try:
            hits = await self.vector_store.knn(vector, k=limit)
            matches = [_to_match(hit) for hit in hits]
        except Exception as e:
            logger.error("Vector search failed: %s", e)
            return SearchOutcome(error=str(e) or type(e).__name__)

        matches.sort(key=lambda m: m.similarity, reverse=True)
        return SearchOutcome(matches=matches[:limit])

    async def find_similar(self, vector: list[float], limit: int = 10) -> list[ProductMatch]:
        """Ranked matches for *vector*; an empty list when the query fails."""
        outcome = await self.search(vector, limit)
        return outcome.matches

    async def recommend_for_profile(
        self,
        goals: Sequence[str] = (),
        conditions: Sequence[str] = (),
        skin_type: str = "",
        limit: int = 10,
    ) -> SearchOutcome:
        """Embed a questionnaire profile and search with the resulting vector."""
        vector = await asyncio.to_thread(self.embedder.embed_profile, goals, conditions, skin_type)
        return await self.search(vector, limit)
