"""Domain models for the trace corpus.

All models use Pydantic for validation, serialization, and type safety.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# Releases that need the older installer action (pre 4.9.0 packaging layout)
LEGACY_INSTALLER_VERSIONS = frozenset({"4.8.7", "4.8.8", "4.8.9"})


# ============================================================================
# Naming Models
# ============================================================================


class SolverVersion(BaseModel):
    """A solver release identifier and its cache-key form."""

    raw: str = Field(min_length=1, description="Release identifier, e.g. 4.12.2")
    sanitized: str = Field(description="Release identifier with '.' replaced by '_'")

    model_config = ConfigDict(frozen=True)

    @property
    def legacy_installer(self) -> bool:
        """Whether this release must be installed with the legacy installer."""
        return self.raw in LEGACY_INSTALLER_VERSIONS


class ProblemFile(BaseModel):
    """A problem input of the corpus, identified by its content hash."""

    path: str = Field(description="Path of the SMT-LIB problem file")
    base_name: str = Field(description="File name without directory and extension")
    sha256: str = Field(min_length=64, max_length=64, description="SHA-256 hex digest of content")

    model_config = ConfigDict(frozen=True)


class CacheKey(BaseModel):
    """Cache key for the logs directory of one solver release."""

    version: SolverVersion
    corpus_hash: str = Field(description="Hash over all problem files (empty if none)")
    key: str = Field(description="logs-<sanitized version>-<corpus hash>")
    restore_prefix: str = Field(description="logs-<sanitized version>-")

    model_config = ConfigDict(frozen=True)


# ============================================================================
# Log Generation Models
# ============================================================================


class ProblemStatus(str, Enum):
    """Outcome of processing one problem file."""

    GENERATED = "generated"
    SKIPPED = "skipped"
    FAILED = "failed"


class ProblemOutcome(BaseModel):
    """Result of processing one problem file."""

    problem: ProblemFile
    log_file: str = Field(description="Path of the trace log for this problem")
    status: ProblemStatus
    removed_stale_logs: list[str] = Field(
        default_factory=list, description="Outdated logs of the same problem that were deleted"
    )
    error: str | None = Field(default=None, description="Diagnostic message if status is failed")
    elapsed_seconds: float = Field(default=0.0, ge=0.0, description="Solver wall-clock time")

    model_config = ConfigDict(frozen=True)


class CorpusRunReport(BaseModel):
    """Summary of a log generation run over the whole corpus."""

    solver_version: str | None = Field(default=None, description="Release used, if known")
    logs_dir: str
    outcomes: list[ProblemOutcome] = Field(default_factory=list)
    total_time_seconds: float = Field(default=0.0, ge=0.0)

    def count(self, status: ProblemStatus) -> int:
        """Number of problems that ended with the given status."""
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def generated(self) -> int:
        return self.count(ProblemStatus.GENERATED)

    @property
    def skipped(self) -> int:
        return self.count(ProblemStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(ProblemStatus.FAILED)


# ============================================================================
# Cache Models
# ============================================================================


class CacheHit(str, Enum):
    """How a cache restore was satisfied."""

    EXACT = "exact"
    PARTIAL = "partial"
    MISS = "miss"


class CacheRestoreResult(BaseModel):
    """Outcome of restoring the logs directory from the cache store."""

    requested_key: str
    matched_key: str | None = None
    hit: CacheHit
    restored_files: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True)


# ============================================================================
# Log Check Models
# ============================================================================


class LogCheckStatus(str, Enum):
    """Outcome of parsing one trace log."""

    PARSED = "parsed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class LogCheckEntry(BaseModel):
    """Parse result for one trace log."""

    log_file: str
    status: LogCheckStatus
    error: str | None = None
    elapsed_seconds: float = Field(default=0.0, ge=0.0)
    instantiation_count: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True)


class LogCheckReport(BaseModel):
    """Result of parsing every trace log in a logs directory."""

    logs_dir: str
    entries: list[LogCheckEntry] = Field(default_factory=list)
    archive_path: str | None = Field(
        default=None, description="Diagnostic archive written because the check failed"
    )

    @property
    def passed(self) -> bool:
        return all(entry.status != LogCheckStatus.FAILED for entry in self.entries)

    @property
    def failures(self) -> list[LogCheckEntry]:
        return [entry for entry in self.entries if entry.status == LogCheckStatus.FAILED]


# ============================================================================
# Matrix Models
# ============================================================================


class VersionRunResult(BaseModel):
    """Everything that happened for one release of the matrix."""

    version: SolverVersion
    cache_key: str
    installed_version: str | None = None
    restore: CacheRestoreResult | None = None
    generation: CorpusRunReport | None = None
    check: LogCheckReport | None = None
    cache_saved: bool = False
    artifact_name: str | None = None
    error: str | None = None

    @property
    def passed(self) -> bool:
        return self.error is None and (self.check is None or self.check.passed)


class MatrixReport(BaseModel):
    """Per-release results of a matrix run."""

    results: list[VersionRunResult] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.results)


# ============================================================================
# Trace Summary
# ============================================================================


class QuantifierCost(BaseModel):
    """Instantiation statistics of one quantifier."""

    name: str
    instances: int = Field(ge=0)
    cost: float = Field(ge=0.0)

    model_config = ConfigDict(frozen=True)


class TraceSummary(BaseModel):
    """Aggregate view of a parsed trace log."""

    solver: str | None = Field(default=None, description="Solver named in [tool-version]")
    version: str | None = Field(default=None, description="Version named in [tool-version]")
    timed_out: bool = Field(default=False, description="Parsing stopped at the parse timeout")
    lines_read: int = Field(ge=0)
    term_count: int = Field(ge=0)
    quantifier_count: int = Field(ge=0)
    instantiation_count: int = Field(ge=0)
    dependency_count: int = Field(ge=0)
    graph_nodes: int = Field(ge=0)
    graph_edges: int = Field(ge=0)
    longest_chain: list[int] = Field(
        default_factory=list, description="Line numbers of the longest instantiation chain"
    )
    top_quantifiers: list[QuantifierCost] = Field(default_factory=list)
