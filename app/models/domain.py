from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class IndexSchema(BaseModel):
    """Declared layout of the product index."""

    name: str = "products"
    key_prefix: str = "product:"
    vector_field: str = "effect_vector"
    dimension: int = 384
    distance: Literal["cosine"] = "cosine"
    hnsw_m: int = 16
    hnsw_ef_construct: int = 100
    text_fields: list[str] = ["name", "effects"]
    tag_fields: list[str] = ["brand", "category"]


class CatalogRecord(BaseModel):
    """A catalog product after normalization; every optional field has its default applied."""

    product_id: str
    name: str = ""
    brand: str = ""
    category: str = ""
    effects: list[str] = []
    ingredients: list[str] = []
    price: float = Field(default=0.0, ge=0.0)
    image_url: str = ""


class IndexedProduct(CatalogRecord):
    effect_vector: list[float]


class EmbeddingResult(BaseModel):
    vector: list[float]
    source: Literal["model", "fallback"]
    error: str | None = None


class KnnHit(BaseModel):
    product_id: str
    distance: float
    payload: dict = {}


class ProductMatch(BaseModel):
    product_id: str
    name: str = ""
    brand: str = ""
    category: str = ""
    effects: list[str] = []
    similarity: float


class SearchOutcome(BaseModel):
    matches: list[ProductMatch] = []
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SyncResult(BaseModel):
    status: Literal["synced", "skipped", "failed"]
    message: str = ""
    new_count: int = 0
    skipped_count: int = 0
    total_count: int = 0

    @property
    def success(self) -> bool:
        return self.status != "failed"


class SyncStatus(BaseModel):
    products_count: int
    last_sync: datetime | None = None
