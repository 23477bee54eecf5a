import logging

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # Catalog source (n8n webhook)
    catalog_source_url: str = ""
    catalog_timeout_seconds: float = 30.0

    # Qdrant
    qdrant_host: str = "localhost"
    qdrant_port: int = 6333
    qdrant_api_key: str = ""
    qdrant_url: str = ""
    qdrant_timeout: int = 10
    collection_name: str = "products"

    # Embedding
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_dimension: int = 384
    embedding_device: str = "cpu"

    # App
    cors_origins: list[str] = ["http://localhost:3000"]
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()

if not settings.catalog_source_url:
    logger.warning("CATALOG_SOURCE_URL is not set. Catalog sync will fail until it is configured.")
