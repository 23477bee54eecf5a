"""FastAPI application entry point with lifespan management."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from qdrant_client import AsyncQdrantClient
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.routes import router as api_router
from app.config import settings
from app.models.domain import IndexSchema
from app.models.schemas import HealthResponse
from app.rate_limit import limiter
from app.services.catalog_client import CatalogClient
from app.services.embedder import EmbeddingService
from app.services.ingestion import IngestionPipeline
from app.services.query import QueryService
from app.services.vector_store import VectorStore

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


def build_qdrant_client() -> AsyncQdrantClient:
    """Create the Qdrant client from settings; ``QDRANT_URL=:memory:`` runs locally."""
    if settings.qdrant_url == ":memory:":
        return AsyncQdrantClient(":memory:")

    if settings.qdrant_url:
        qdrant_kwargs: dict = {"url": settings.qdrant_url}
    else:
        qdrant_kwargs = {"host": settings.qdrant_host, "port": settings.qdrant_port}
    if settings.qdrant_api_key:
        qdrant_kwargs["api_key"] = settings.qdrant_api_key
    return AsyncQdrantClient(timeout=settings.qdrant_timeout, **qdrant_kwargs)


def build_vector_store(client: AsyncQdrantClient) -> VectorStore:
    schema = IndexSchema(name=settings.collection_name, dimension=settings.embedding_dimension)
    return VectorStore(client, schema=schema)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize services on startup, clean up on shutdown."""
    logger.info("Initializing services...")

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
    vector_store = build_vector_store(qdrant_client)

    pipeline = IngestionPipeline(
        catalog_client=catalog_client,
        embedder=embedder,
        vector_store=vector_store,
    )
    query_service = QueryService(embedder=embedder, vector_store=vector_store)

    app.state.catalog_client = catalog_client
    app.state.embedder = embedder
    app.state.vector_store = vector_store
    app.state.pipeline = pipeline
    app.state.query_service = query_service
    app.state.qdrant_client = qdrant_client

    logger.info("All services initialized.")
    yield

    logger.info("Shutting down services...")
    await catalog_client.close()
    await qdrant_client.close()
    logger.info("Services shut down.")


app = FastAPI(title="SkinMatch", version="0.1.0", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log request method, path, and response time."""
    start = time.monotonic()
    response = await call_next(request)
    elapsed = (time.monotonic() - start) * 1000
    logger.info(
        "%s %s - %d (%.1fms)", request.method, request.url.path, response.status_code, elapsed
    )
    return response


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return clean JSON for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


@app.get("/api/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    qdrant_connected = True
    try:
        indexed_products = await app.state.vector_store.count_products()
    except Exception:
        indexed_products = 0
        qdrant_connected = False

    embedding_source = "unloaded"
    if hasattr(app.state, "embedder"):
        embedding_source = app.state.embedder.source

    return HealthResponse(
        status="ok" if qdrant_connected else "degraded",
        indexed_products=indexed_products,
        qdrant_connected=qdrant_connected,
        embedding_source=embedding_source,
    )
