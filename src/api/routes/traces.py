"""Trace API routes.

Endpoints for parsing Z3 trace logs.
"""

import logging
import time

from fastapi import APIRouter, Depends, HTTPException

from src.api.dependencies import get_settings
from src.api.models import AnalyzeRequest, ErrorResponse
from src.domain.exceptions import TraceParseError
from src.domain.models import TraceSummary
from src.domain.trace.graph import summarize
from src.domain.trace.parser import Z3TraceParser
from src.shared.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/traces", tags=["traces"])


@router.post(
    "/analyze",
    response_model=TraceSummary,
    summary="Parse and summarize a trace log",
    description="""
    Parse a Z3 trace log and summarize its quantifier instantiations.

    Parsing stops after the configured parse timeout; the summary then covers
    the part that was read and `timed_out` is true.
    """,
    responses={
        422: {"model": ErrorResponse, "description": "The trace log is malformed"},
    },
)
def analyze_trace(
    request: AnalyzeRequest,
    settings: Settings = Depends(get_settings),
) -> TraceSummary:
    """Parse the submitted trace log (runs in the threadpool)."""
    parser = Z3TraceParser()
    deadline = time.monotonic() + settings.parse_timeout
    try:
        timed_out = parser.process_lines(request.content.splitlines(), deadline=deadline)
    except TraceParseError as e:
        logger.warning(f"Trace log rejected: {e}")
        raise HTTPException(status_code=422, detail=str(e)) from e
    return summarize(parser, timed_out=timed_out, top_n=request.top_n)
