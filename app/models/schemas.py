from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.models.domain import ProductMatch


class SyncRequest(BaseModel):
    force: bool = False


class SyncResponse(BaseModel):
    success: bool
    message: str = ""
    skipped: bool = False
    new_products: int = 0
    skipped_products: int = 0
    total_products: int = 0
    error: str | None = None


class SyncStatusResponse(BaseModel):
    success: bool
    products_count: int = 0
    data_exists: bool = False
    last_sync: datetime | None = None
    error: str | None = None


class RecommendationRequest(BaseModel):
    goals: list[str] = []
    conditions: list[str] = []
    skin_type: str = ""
    limit: int = Field(default=10, ge=1, le=50)

    @field_validator("goals", "conditions")
    @classmethod
    def strip_blank_tags(cls, v: list[str]) -> list[str]:
        return [tag.strip() for tag in v if tag.strip()]

    @field_validator("skin_type")
    @classmethod
    def strip_skin_type(cls, v: str) -> str:
        return v.strip()


class RecommendationResponse(BaseModel):
    results: list[ProductMatch]
    search_time_ms: float = 0


class HealthResponse(BaseModel):
    status: str
    indexed_products: int = 0
    qdrant_connected: bool = True
    embedding_source: str = "unloaded"
