"""Corpus API routes.

Endpoints for cache keys, trace log listing and log generation.
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query

from src.api.dependencies import get_log_generation_service, get_settings
from src.api.models import CacheKeyResponse, ErrorResponse, GenerateRequest, LogFileInfo, LogListResponse
from src.application.log_generation_service import LogGenerationService
from src.application.matrix_service import compute_cache_key
from src.domain.exceptions import CorpusError
from src.domain.models import CorpusRunReport
from src.domain.naming import LOG_SUFFIX, parse_log_file_name
from src.shared.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/corpus", tags=["corpus"])


@router.get(
    "/cache-key",
    response_model=CacheKeyResponse,
    summary="Cache key of a solver release",
    description="Hash the problem corpus and derive the logs cache key for a release.",
)
async def get_cache_key(
    version: str = Query(min_length=1, description="Solver release, e.g. 4.12.2"),
    settings: Settings = Depends(get_settings),
) -> CacheKeyResponse:
    """Return the cache key of a release for the current corpus content."""
    try:
        key = compute_cache_key(version, settings.problems_dir, settings.problem_glob)
    except OSError as e:
        logger.error(f"Failed to hash problem corpus: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to hash problem corpus") from e
    return CacheKeyResponse.from_domain(key)


@router.get(
    "/logs",
    response_model=LogListResponse,
    summary="List trace logs",
    description="List the trace logs of the logs directory with the problem each was produced from.",
)
async def list_logs(settings: Settings = Depends(get_settings)) -> LogListResponse:
    """Return the trace logs currently present, sorted by name."""
    logs_dir = Path(settings.logs_dir)
    logs = []
    if logs_dir.is_dir():
        for path in sorted(logs_dir.glob(f"*{LOG_SUFFIX}")):
            if not path.is_file():
                continue
            parsed = parse_log_file_name(path.name)
            logs.append(
                LogFileInfo(
                    name=path.name,
                    problem=parsed[0] if parsed else None,
                    problem_hash=parsed[1] if parsed else None,
                    size_bytes=path.stat().st_size,
                )
            )
    return LogListResponse(logs_dir=str(logs_dir), logs=logs)


@router.post(
    "/generate",
    response_model=CorpusRunReport,
    summary="Produce missing trace logs",
    description="""
    Run the configured Z3 executable on every problem whose trace log is missing.

    Problems whose log already exists are skipped. A problem the solver fails on
    is reported with status `failed`; processing continues with the next problem.
    """,
    responses={
        422: {"model": ErrorResponse, "description": "The corpus could not be processed"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
)
async def generate_logs(
    request: GenerateRequest,
    settings: Settings = Depends(get_settings),
    service: LogGenerationService = Depends(get_log_generation_service),
) -> CorpusRunReport:
    """Produce the trace logs missing from the logs directory."""
    try:
        return await service.generate(
            settings.problems_dir,
            settings.logs_dir,
            pattern=settings.problem_glob,
            solver_version=request.version,
        )
    except CorpusError as e:
        logger.warning(f"Log generation failed: {e}")
        raise HTTPException(status_code=422, detail=str(e)) from e
    except OSError as e:
        logger.error(f"Unexpected error during log generation: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error during log generation") from e
