"""FastAPI dependency injection providers."""

from fastapi import Request

from app.services.ingestion import IngestionPipeline
from app.services.query import QueryService


def get_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.pipeline


def get_query_service(request: Request) -> QueryService:
    return request.app.state.query_service
