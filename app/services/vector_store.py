"""Vector store service wrapping Qdrant for the product index.

Each product is one point holding the product document as payload and its
effects embedding under the ``effect_vector`` named vector.  Point ids are
derived from the ``product:<id>`` key so writes for the same identifier always
land on the same point.
"""

import logging
import uuid

from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.models import (
    Distance,
    HnswConfigDiff,
    PayloadSchemaType,
    PointStruct,
    TextIndexParams,
    TextIndexType,
    TokenizerType,
    VectorParams,
)

from app.errors import IndexCreationError
from app.models.domain import IndexedProduct, IndexSchema, KnnHit
from app.services.similarity import to_distance

logger = logging.getLogger(__name__)

_RETURN_FIELDS = ["product_id", "name", "brand", "category", "effects"]


def _is_already_exists(exc: Exception) -> bool:
    if isinstance(exc, UnexpectedResponse) and exc.status_code == 409:
        return True
    return "already exists" in str(exc).lower()


class VectorStore:
    """Manages the Qdrant collection that backs the product index."""

    def __init__(self, client: AsyncQdrantClient, schema: IndexSchema | None = None) -> None:
        self.client = client
        self.schema = schema or IndexSchema()
        self.collection_name = self.schema.name

    @property
    def vector_size(self) -> int:
        return self.schema.dimension

    def product_key(self, product_id: str) -> str:
        return f"{self.schema.key_prefix}{product_id}"

    def point_id(self, product_id: str) -> str:
        """Stable point id for *product_id*; a pure function of its key."""
        return str(uuid.uuid5(uuid.NAMESPACE_URL, self.product_key(product_id)))

    async def index_exists(self) -> bool:
        return await self.client.collection_exists(self.collection_name)

    async def ensure_index(self) -> bool:
        """Create the product collection if it doesn't exist. Idempotent.

        Returns True when this call created the collection.  Losing a creation
        race to a concurrent caller counts as success.  If a payload index
        can't be created, the new collection is dropped again so the next call
        starts from scratch instead of finding a half-built schema.
        """
        if await self.index_exists():
            logger.info("Collection '%s' already exists, skipping creation.", self.collection_name)
            return False

        try:
            await self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config={
                    self.schema.vector_field: VectorParams(
                        size=self.schema.dimension,
                        distance=Distance.COSINE,
                        hnsw_config=HnswConfigDiff(
                            m=self.schema.hnsw_m,
                            ef_construct=self.schema.hnsw_ef_construct,
                        ),
                    ),
                },
            )
        except Exception as e:
            if _is_already_exists(e):
                logger.info("Collection '%s' was created concurrently.", self.collection_name)
                return False
            raise IndexCreationError(
                f"Failed to create collection '{self.collection_name}': {e}"
            ) from e

        try:
            await self._create_payload_indexes()
        except Exception as e:
            await self._drop_incomplete_collection()
            raise IndexCreationError(
                f"Failed to create payload indexes on '{self.collection_name}': {e}"
            ) from e

        logger.info(
            "Created collection '%s' (%d-d %s vectors, HNSW).",
            self.collection_name,
            self.schema.dimension,
            self.schema.distance,
        )
        return True

    async def _create_payload_indexes(self) -> None:
        for field in self.schema.text_fields:
            await self.client.create_payload_index(
                collection_name=self.collection_name,
                field_name=field,
                field_schema=TextIndexParams(
                    type=TextIndexType.TEXT,
                    tokenizer=TokenizerType.WORD,
                    lowercase=True,
                ),
            )
        for field in self.schema.tag_fields:
            await self.client.create_payload_index(
                collection_name=self.collection_name,
                field_name=field,
                field_schema=PayloadSchemaType.KEYWORD,
            )

    async def _drop_incomplete_collection(self) -> None:
        try:
            await self.client.delete_collection(self.collection_name)
        except Exception as e:
            logger.error(
                "Could not drop incomplete collection '%s'; delete it before retrying: %s",
                self.collection_name,
                e,
            )
        else:
            logger.warning("Dropped incomplete collection '%s'.", self.collection_name)

    async def put_product(self, product: IndexedProduct) -> None:
        """Write a product document and its vector as one point."""
        payload = product.model_dump(exclude={"effect_vector"})
        payload["key"] = self.product_key(product.product_id)
        point = PointStruct(
            id=self.point_id(product.product_id),
            vector={self.schema.vector_field: product.effect_vector},
            payload=payload,
        )
        await self.client.upsert(
            collection_name=self.collection_name,
            points=[point],
            wait=True,
        )
        logger.debug("Stored %s in collection '%s'.", payload["key"], self.collection_name)

    async def get_product(self, product_id: str, *, with_vector: bool = False) -> dict | None:
        """Fetch a stored product document, or None if not found."""
        results = await self.client.retrieve(
            collection_name=self.collection_name,
            ids=[self.point_id(product_id)],
            with_payload=True,
            with_vectors=with_vector,
        )
        if not results:
            return None
        document = dict(results[0].payload or {})
        if with_vector:
            document[self.schema.vector_field] = results[0].vector[self.schema.vector_field]
        return document

    async def product_exists(self, product_id: str) -> bool:
        results = await self.client.retrieve(
            collection_name=self.collection_name,
            ids=[self.point_id(product_id)],
            with_payload=False,
        )
        return len(results) > 0

    async def count_products(self) -> int:
        """Number of indexed products; 0 when the collection doesn't exist."""
        if not await self.index_exists():
            return 0
        result = await self.client.count(collection_name=self.collection_name, exact=True)
        return result.count

    async def has_products(self) -> bool:
        return await self.count_products() > 0

    async def get_index_stats(self) -> dict:
        """Get collection info: points count, status, etc."""
        info = await self.client.get_collection(self.collection_name)
        return {
            "points_count": info.points_count,
            "status": info.status.value if info.status else None,
            "collection_name": self.collection_name,
        }

    async def knn(self, vector: list[float], k: int) -> list[KnnHit]:
        """Approximate nearest neighbours of *vector*, closest first.

        Qdrant scores cosine collections by similarity; hits are reported as
        cosine distance so every store exposes the same convention.
        """
        response = await self.client.query_points(
            collection_name=self.collection_name,
            query=vector,
            using=self.schema.vector_field,
            limit=k,
            with_payload=_RETURN_FIELDS,
        )
        hits: list[KnnHit] = []
        for point in response.points:
            payload = point.payload or {}
            hits.append(
                KnnHit(
                    product_id=str(payload.get("product_id", "")),
                    distance=to_distance(point.score),
                    payload=payload,
                )
            )
        return hits
