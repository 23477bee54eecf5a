"""Tests for QueryService ranking, distance conversion and failure handling."""

import math
from unittest.mock import AsyncMock, MagicMock

import pytest
from qdrant_client import AsyncQdrantClient

from app.models.domain import IndexedProduct, IndexSchema, KnnHit
from app.services.query import QueryService
from app.services.vector_store import VectorStore

VECTOR_SIZE = 384
QUERY_VECTOR = [0.1] * VECTOR_SIZE


def _normalize(v: list[float]) -> list[float]:
    norm = math.sqrt(sum(x * x for x in v))
    return [x / norm for x in v] if norm > 0 else v


def _hit(product_id: str, distance: float, **payload) -> KnnHit:
    return KnnHit(
        product_id=product_id,
        distance=distance,
        payload={"product_id": product_id, "name": f"Product {product_id}", **payload},
    )


@pytest.fixture
def mock_store():
    store = AsyncMock(spec=VectorStore)
    store.knn = AsyncMock(return_value=[])
    return store


@pytest.fixture
def mock_embedder():
    embedder = MagicMock()
    embedder.embed_profile = MagicMock(return_value=QUERY_VECTOR)
    return embedder


@pytest.fixture
def service(mock_embedder, mock_store):
    return QueryService(embedder=mock_embedder, vector_store=mock_store)


# --- Unit tests with a mocked store ---


async def test_distance_converted_to_similarity(service, mock_store):
    mock_store.knn = AsyncMock(
        return_value=[
            _hit("p1", 0.2, brand="Acme", category="serum", effects=["hydrating"]),
        ]
    )

    matches = await service.find_similar(QUERY_VECTOR, limit=5)

    assert len(matches) == 1
    match = matches[0]
    assert match.product_id == "p1"
    assert match.name == "Product p1"
    assert match.brand == "Acme"
    assert match.category == "serum"
    assert match.effects == ["hydrating"]
    assert match.similarity == pytest.approx(0.8)


async def test_knn_called_with_limit_as_k(service, mock_store):
    await service.find_similar(QUERY_VECTOR, limit=7)
    mock_store.knn.assert_awaited_once_with(QUERY_VECTOR, k=7)


async def test_results_sorted_by_descending_similarity(service, mock_store):
    mock_store.knn = AsyncMock(
        return_value=[_hit("b", 0.5), _hit("a", 0.1), _hit("c", 0.9)]
    )

    matches = await service.find_similar(QUERY_VECTOR, limit=3)

    assert [m.product_id for m in matches] == ["a", "b", "c"]
    similarities = [m.similarity for m in matches]
    assert similarities == sorted(similarities, reverse=True)


async def test_results_truncated_to_limit(service, mock_store):
    mock_store.knn = AsyncMock(return_value=[_hit(f"p{i}", i / 10) for i in range(5)])

    matches = await service.find_similar(QUERY_VECTOR, limit=2)

    assert [m.product_id for m in matches] == ["p0", "p1"]


async def test_missing_payload_fields_default(service, mock_store):
    mock_store.knn = AsyncMock(return_value=[KnnHit(product_id="p1", distance=0.0)])

    matches = await service.find_similar(QUERY_VECTOR)

    assert matches[0].name == ""
    assert matches[0].effects == []
    assert matches[0].similarity == 1.0


async def test_query_failure_returns_empty_list(service, mock_store):
    mock_store.knn = AsyncMock(side_effect=RuntimeError("qdrant unreachable"))

    assert await service.find_similar(QUERY_VECTOR) == []


async def test_query_failure_is_classified(service, mock_store):
    mock_store.knn = AsyncMock(side_effect=RuntimeError("qdrant unreachable"))

    outcome = await service.search(QUERY_VECTOR)

    assert outcome.ok is False
    assert outcome.matches == []
    assert "qdrant unreachable" in outcome.error


async def test_no_matches_is_not_an_error(service):
    outcome = await service.search(QUERY_VECTOR)

    assert outcome.ok is True
    assert outcome.matches == []


async def test_non_positive_limit_skips_query(service, mock_store):
    assert await service.find_similar(QUERY_VECTOR, limit=0) == []
    mock_store.knn.assert_not_called()


async def test_recommend_for_profile_embeds_profile(service, mock_embedder, mock_store):
    mock_store.knn = AsyncMock(return_value=[_hit("p1", 0.3)])

    outcome = await service.recommend_for_profile(
        goals=["hydration"], conditions=["redness"], skin_type="dry", limit=4
    )

    mock_embedder.embed_profile.assert_called_once_with(["hydration"], ["redness"], "dry")
    mock_store.knn.assert_awaited_once_with(QUERY_VECTOR, k=4)
    assert outcome.matches[0].similarity == pytest.approx(0.7)


# --- Integration with Qdrant in-memory mode ---


@pytest.fixture
async def store_with_products():
    client = AsyncQdrantClient(":memory:")
    store = VectorStore(client, schema=IndexSchema(dimension=VECTOR_SIZE))
    await store.ensure_index()

    exact = _normalize([1.0] * 64 + [0.0] * (VECTOR_SIZE - 64))
    moderate = _normalize([1.0] * 32 + [0.0] * 32 + [1.0] * 32 + [0.0] * (VECTOR_SIZE - 96))
    unrelated = _normalize([0.0] * 64 + [1.0] * 64 + [0.0] * (VECTOR_SIZE - 128))

    for product_id, vector in (("exact", exact), ("moderate", moderate), ("unrelated", unrelated)):
        await store.put_product(
            IndexedProduct(
                product_id=product_id,
                name=product_id.title(),
                effects=[product_id],
                effect_vector=vector,
            )
        )
    return store, exact


async def test_find_similar_against_qdrant(store_with_products, mock_embedder):
    store, query = store_with_products
    service = QueryService(embedder=mock_embedder, vector_store=store)

    matches = await service.find_similar(query, limit=3)

    assert [m.product_id for m in matches] == ["exact", "moderate", "unrelated"]
    assert matches[0].similarity == pytest.approx(1.0, abs=1e-4)
    assert matches[1].similarity == pytest.approx(0.5, abs=1e-4)
    assert matches[2].similarity == pytest.approx(0.0, abs=1e-4)
    assert matches[0].effects == ["exact"]


async def test_find_similar_empty_collection(mock_embedder):
    client = AsyncQdrantClient(":memory:")
    store = VectorStore(client, schema=IndexSchema(dimension=VECTOR_SIZE))
    await store.ensure_index()
    service = QueryService(embedder=mock_embedder, vector_store=store)

    assert await service.find_similar(QUERY_VECTOR) == []


async def test_find_similar_missing_collection_returns_empty(mock_embedder):
    store = VectorStore(AsyncQdrantClient(":memory:"), schema=IndexSchema(dimension=VECTOR_SIZE))
    service = QueryService(embedder=mock_embedder, vector_store=store)

    outcome = await service.search(QUERY_VECTOR)

    assert outcome.matches == []
    assert outcome.ok is False
