"""Main FastAPI application.

Entry point for the trace corpus service.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from src.api.dependencies import get_settings
from src.api.routes import corpus, traces
from src.shared.logging_config import configure_logging

# Configure logging
settings = get_settings()
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Logs the corpus configuration and reports the solver found at startup.
    """
    logger.info(f"Starting {settings.api_title} v{settings.api_version}")
    logger.info(
        f"Corpus: problems_dir={settings.problems_dir}, glob={settings.problem_glob}, "
        f"logs_dir={settings.logs_dir}"
    )

    from src.api.dependencies import get_tracer

    installed = await get_tracer().version()
    if installed is None:
        logger.warning(f"Z3 not available at {settings.z3_path}; log generation will fail")
    else:
        logger.info(f"Using Z3 {installed} at {settings.z3_path}")

    yield

    logger.info(f"Shutting down {settings.api_title}")


app = FastAPI(
    lifespan=lifespan,
    title=settings.api_title,
    version=settings.api_version,
    description=settings.api_description,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "corpus", "description": "Cache keys, trace log listing and log generation"},
        {"name": "traces", "description": "Trace log parsing and instantiation analysis"},
        {"name": "Health & Status", "description": "Service health check and status endpoints"},
    ],
)

# Include routers
app.include_router(corpus.router)
app.include_router(traces.router)


@app.get("/", include_in_schema=False)
async def root():
    """Redirect root to API documentation."""
    return RedirectResponse(url="/docs")


@app.get(
    "/health",
    status_code=200,
    summary="Service health check",
    tags=["Health & Status"],
)
async def health_check():
    """Service health check endpoint.

    Returns:
        Dictionary containing service health status and metadata
    """
    return {
        "status": "healthy",
        "service": settings.api_title,
        "version": settings.api_version,
        "z3_path": settings.z3_path,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app", host="0.0.0.0", port=8000, reload=True, log_level=settings.log_level.lower()
    )
