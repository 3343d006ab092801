"""Dependency injection for FastAPI.

Provides singleton instances of infrastructure components and per-request services.
"""

from functools import lru_cache

from src.application.log_generation_service import LogGenerationService
from src.infrastructure.smt.z3_tracer import Z3Tracer
from src.shared.config import Settings


@lru_cache
def get_settings() -> Settings:
    """Get application settings (singleton).

    Cached because settings are expensive to load and should be reused.

    Returns:
        Application settings
    """
    return Settings()


@lru_cache
def get_tracer() -> Z3Tracer:
    """Get the Z3 tracer for the default executable (singleton).

    Cached because the tracer is stateless and can be reused.

    Returns:
        Z3 tracer
    """
    settings = get_settings()
    return Z3Tracer(settings.z3_path, grace_period=settings.solver_grace_period)


def get_log_generation_service() -> LogGenerationService:
    """Get log generation service (per-request).

    Returns:
        Log generation service using the shared tracer
    """
    return LogGenerationService(get_tracer(), solver_timeout=get_settings().solver_timeout)
