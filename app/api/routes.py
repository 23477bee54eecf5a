"""API route definitions."""

import logging
import time

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.api.dependencies import get_pipeline, get_query_service
from app.models.schemas import (
    RecommendationRequest,
    RecommendationResponse,
    SyncRequest,
    SyncResponse,
    SyncStatusResponse,
)
from app.rate_limit import limiter
from app.services.ingestion import IngestionPipeline
from app.services.query import QueryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.post("/sync", response_model=SyncResponse)
@limiter.limit("5/minute")
async def sync_catalog(
    request: Request,
    body: SyncRequest | None = None,
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """Pull the catalog into the product index."""
    force = body.force if body else False
    result = await pipeline.sync(force=force)

    if result.status == "failed":
        return JSONResponse(
            status_code=500,
            content=SyncResponse(success=False, error=result.message).model_dump(),
        )

    return SyncResponse(
        success=True,
        message=result.message,
        skipped=result.status == "skipped",
        new_products=result.new_count,
        skipped_products=result.skipped_count,
        total_products=result.total_count,
    )


@router.get("/sync", response_model=SyncStatusResponse)
async def sync_status(pipeline: IngestionPipeline = Depends(get_pipeline)):
    """Report how many products are indexed and when this process last synced."""
    try:
        status = await pipeline.get_sync_status()
    except Exception as e:
        logger.error("Failed to read sync status: %s", e)
        return JSONResponse(
            status_code=500,
            content=SyncStatusResponse(success=False, error=str(e)).model_dump(mode="json"),
        )

    return SyncStatusResponse(
        success=True,
        products_count=status.products_count,
        data_exists=status.products_count > 0,
        last_sync=status.last_sync,
    )


@router.post("/recommendations", response_model=RecommendationResponse)
@limiter.limit("30/minute")
async def recommend(
    request: Request,
    body: RecommendationRequest,
    query_service: QueryService = Depends(get_query_service),
):
    """Rank catalog products against a questionnaire profile."""
    start = time.monotonic()
    outcome = await query_service.recommend_for_profile(
        goals=body.goals,
        conditions=body.conditions,
        skin_type=body.skin_type,
        limit=body.limit,
    )
    elapsed_ms = (time.monotonic() - start) * 1000

    return RecommendationResponse(
        results=outcome.matches,
        search_time_ms=round(elapsed_ms, 1),
    )
