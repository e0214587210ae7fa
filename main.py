"""Seedbed - retrieval-augmented ingestion pipeline."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from seedbed.api import router
from seedbed.config import get_settings
from seedbed.dependencies import get_embedding_provider, get_pipeline


def _setup_logging(debug: bool = False) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    _setup_logging(settings.debug)

    provider = get_embedding_provider()

    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    logger.info("Environment: %s", settings.env)
    logger.info("Embedding Provider: %s (%s)", provider.provider_name, provider.model_name)

    pipeline = None
    try:
        pipeline = get_pipeline()
        await pipeline.start()
        logger.info("Pipeline loaded from %s", settings.pipeline_config_path)
    except Exception as e:
        logger.warning("Pipeline initialization failed: %s", e)

    yield

    logger.info("Shutting down...")

    if pipeline is not None:
        try:
            await pipeline.stop()
        except Exception as e:
            logger.warning("Error stopping pipeline: %s", e)

    logger.info("Shutdown complete")


settings = get_settings()

# Configure CORS based on environment
allowed_origins = ["*"] if settings.is_development else []

app = FastAPI(
    title=settings.app_name,
    description="Keeps vector stores in sync with changing content and serves similarity retrieval",
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
)

# Include API routes
app.include_router(router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
