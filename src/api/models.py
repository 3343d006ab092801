"""API request/response models.

Separate from domain models to allow different validation rules.
"""

from pydantic import BaseModel, Field

from src.domain.models import CacheKey


class CacheKeyResponse(BaseModel):
    """Cache key of a solver release for the current problem corpus."""

    version: str = Field(description="Requested release", examples=["4.12.2"])
    z3_v_clean: str = Field(description="Release with '.' replaced by '_'", examples=["4_12_2"])
    corpus_hash: str = Field(description="Hash over all problem files, empty if there are none")
    cache_key: str = Field(description="logs-<z3_v_clean>-<corpus_hash>")
    restore_prefix: str = Field(description="Prefix used for partial cache restores")

    @classmethod
    def from_domain(cls, key: CacheKey) -> "CacheKeyResponse":
        return cls(
            version=key.version.raw,
            z3_v_clean=key.version.sanitized,
            corpus_hash=key.corpus_hash,
            cache_key=key.key,
            restore_prefix=key.restore_prefix,
        )


class LogFileInfo(BaseModel):
    """A trace log of the logs directory."""

    name: str = Field(description="File name")
    problem: str | None = Field(default=None, description="Basename of the problem it was produced from")
    problem_hash: str | None = Field(default=None, description="SHA-256 of the problem content")
    size_bytes: int = Field(ge=0)


class LogListResponse(BaseModel):
    """Trace logs currently present in the logs directory."""

    logs_dir: str
    logs: list[LogFileInfo] = Field(default_factory=list)


class GenerateRequest(BaseModel):
    """Request to produce the missing trace logs of the corpus."""

    version: str | None = Field(
        default=None,
        description="Release recorded in the report (the configured Z3 executable is used)",
        examples=["4.12.2"],
    )


class AnalyzeRequest(BaseModel):
    """Request to parse a trace log and summarize it."""

    content: str = Field(
        min_length=1,
        max_length=50_000_000,
        description="Content of a Z3 trace log (written with trace=true)",
        examples=["[tool-version] Z3 4.12.2\n[mk-app] #1 true\n"],
    )
    top_n: int = Field(default=10, ge=1, le=1000, description="Number of quantifiers listed by cost")


class ErrorResponse(BaseModel):
    """Error response model returned when a request cannot be served."""

    error: str = Field(description="Human-readable error message describing what went wrong")
    details: dict | None = Field(default=None, description="Additional structured error details")
