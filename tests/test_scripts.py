"""Tests for the operator scripts' error handling and export loading."""

import json
from functools import partial
from unittest.mock import AsyncMock, MagicMock

import pytest
from qdrant_client import AsyncQdrantClient

from app.errors import SourceUnavailableError
from app.services.embedder import EmbeddingService
from scripts import setup_index, sync_catalog


def _failing_loader(name, device):
    raise OSError("model not available offline")


class TestLoadExport:
    def test_reads_envelope(self, tmp_path):
        path = tmp_path / "export.json"
        path.write_text(json.dumps({"products": [{"id": "p1", "name": "Serum"}]}))

        assert sync_catalog.load_export(path) == [{"id": "p1", "name": "Serum"}]

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceUnavailableError, match="Cannot read"):
            sync_catalog.load_export(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        with pytest.raises(SourceUnavailableError, match="not valid JSON"):
            sync_catalog.load_export(path)


@pytest.fixture
def memory_qdrant(monkeypatch):
    client = AsyncQdrantClient(":memory:")
    monkeypatch.setattr(sync_catalog, "build_qdrant_client", lambda: client)
    monkeypatch.setattr(
        sync_catalog, "EmbeddingService", partial(EmbeddingService, model_loader=_failing_loader)
    )
    return client


async def test_sync_from_missing_file_exits_nonzero(memory_qdrant, tmp_path):
    assert await sync_catalog.main(from_file=tmp_path / "absent.json") == 1


async def test_sync_from_file_ingests_records(memory_qdrant, tmp_path):
    path = tmp_path / "export.json"
    path.write_text(json.dumps([{"id": "p1", "name": "Serum", "effects": ["hydrating"]}]))

    assert await sync_catalog.main(from_file=path) == 0


async def test_setup_index_connection_failure_exits_nonzero(monkeypatch):
    client = AsyncMock()
    store = MagicMock()
    store.ensure_index = AsyncMock(side_effect=ConnectionError("connection refused"))
    monkeypatch.setattr(setup_index, "build_qdrant_client", lambda: client)
    monkeypatch.setattr(setup_index, "build_vector_store", lambda c: store)

    assert await setup_index.main() == 1
    client.close.assert_awaited_once()


async def test_setup_index_creates_collection(monkeypatch):
    monkeypatch.setattr(setup_index, "build_qdrant_client", lambda: AsyncQdrantClient(":memory:"))

    assert await setup_index.main() == 0
