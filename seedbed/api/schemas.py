"""API request and response schemas."""

from pydantic import BaseModel, Field

# Health & Info

class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    environment: str
    embedding_provider: str
    embedding_model: str
    pipeline_running: bool
    stored_records: int


class LoaderStatus(BaseModel):
    """State of one loader runtime."""

    name: str
    producer: str
    schedule: str
    ticks: int
    failures: int
    items: int
    done: bool


class StageStatus(BaseModel):
    """Counters of one embedding stage."""

    name: str
    loaders: list[str]
    stores: list[str]
    embedded: int
    skipped: int
    removed: int
    failed: int
    batches: int


class StoreStatus(BaseModel):
    """Size and dimension of one vector store."""

    name: str
    dimension: int | None
    count: int


class PipelineStatusResponse(BaseModel):
    """Pipeline status response."""

    running: bool
    loaders: list[LoaderStatus]
    stages: list[StageStatus]
    stores: list[StoreStatus]
    errors: int


# Retrieval

class RetrieveRequest(BaseModel):
    """Retrieval request body."""

    query: str = Field(min_length=1, max_length=10000)
    k: int | None = Field(default=None, ge=1, le=100)
    filter: dict[str, str | int | float | bool] | None = Field(
        default=None,
        description="Optional metadata equality filter",
    )


class RetrievedItem(BaseModel):
    """Single retrieval result."""

    id: str
    content: str
    score: float
    source_tag: str
    metadata: dict


class RetrieveResponse(BaseModel):
    """Retrieval response body."""

    query: str
    results: list[RetrievedItem]
    context: str
    total: int


class RefreshResponse(BaseModel):
    """Manual loader refresh response."""

    status: str
    loader: str


class ErrorResponse(BaseModel):
    """Error response body."""

    detail: str
