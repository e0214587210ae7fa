"""API routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from seedbed.api.schemas import (
    ErrorResponse,
    HealthResponse,
    PipelineStatusResponse,
    RefreshResponse,
    RetrievedItem,
    RetrieveRequest,
    RetrieveResponse,
)
from seedbed.config import get_settings
from seedbed.core.exception import ConfigError, DimensionMismatchError, ProviderError
from seedbed.dependencies import get_embedding_provider, get_pipeline
from seedbed.embeddings import EmbeddingProvider
from seedbed.pipeline import Pipeline

logger = logging.getLogger(__name__)

router = APIRouter()


# Health & Info


@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
)
async def health_check(
    pipeline: Pipeline = Depends(get_pipeline),
    provider: EmbeddingProvider = Depends(get_embedding_provider),
) -> HealthResponse:
    """Check application health status."""
    settings = get_settings()

    try:
        stored = await pipeline.coordinator.document_count()
    except Exception:
        stored = 0

    return HealthResponse(
        status="healthy" if pipeline.started else "degraded",
        version=settings.app_version,
        environment=settings.env,
        embedding_provider=provider.provider_name,
        embedding_model=provider.model_name,
        pipeline_running=pipeline.started,
        stored_records=stored,
    )


@router.get(
    "/pipeline/status",
    response_model=PipelineStatusResponse,
    tags=["Pipeline"],
)
async def pipeline_status(pipeline: Pipeline = Depends(get_pipeline)) -> PipelineStatusResponse:
    """Show loader, stage and store state."""
    return PipelineStatusResponse(**await pipeline.status())


@router.post(
    "/loaders/{loader_name}/refresh",
    response_model=RefreshResponse,
    responses={404: {"model": ErrorResponse}, 400: {"model": ErrorResponse}},
    tags=["Pipeline"],
)
async def refresh_loader(
    loader_name: str,
    pipeline: Pipeline = Depends(get_pipeline),
) -> RefreshResponse:
    """Trigger a reload of a manually signalled loader."""
    try:
        pipeline.refresh(loader_name)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Loader '{loader_name}' not found")
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return RefreshResponse(status="triggered", loader=loader_name)


# Retrieval


@router.post(
    "/retrieve",
    response_model=RetrieveResponse,
    responses={422: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    tags=["Retrieval"],
)
async def retrieve(
    request: RetrieveRequest,
    pipeline: Pipeline = Depends(get_pipeline),
) -> RetrieveResponse:
    """Retrieve the stored content most similar to a query."""
    try:
        results = await pipeline.retrieve(
            request.query, k=request.k, metadata_filter=request.filter
        )
    except DimensionMismatchError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ProviderError:
        logger.exception("Retrieval failed for query")
        raise HTTPException(
            status_code=502,
            detail="Embedding provider unavailable. Please try again.",
        )

    return RetrieveResponse(
        query=request.query,
        results=[
            RetrievedItem(
                id=r.id,
                content=r.payload,
                score=r.score,
                source_tag=r.source_tag,
                metadata=dict(r.metadata),
            )
            for r in results
        ],
        context=pipeline.coordinator.format_context(results),
        total=len(results),
    )
