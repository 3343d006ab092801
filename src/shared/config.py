"""Configuration management using Pydantic Settings.

Loads configuration from environment variables with validation.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_Z3_VERSIONS = ["4.8.7", "4.8.17", "4.11.2", "4.12.2", "4.12.4"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_title: str = Field(default="SMT Trace Corpus", description="API title")
    api_version: str = Field(default="0.1.0", description="API version")
    api_description: str = Field(
        default="Generate, cache and check Z3 trace logs for a corpus of SMT-LIB problems",
        description="API description",
    )

    # Corpus Configuration
    problems_dir: str = Field(
        default="smt-problems", description="Root directory of the SMT-LIB problem corpus"
    )
    problem_glob: str = Field(
        default="**/*.smt2", description="Glob (relative to problems_dir) selecting problem files"
    )
    logs_dir: str = Field(default="logs", description="Directory receiving generated trace logs")

    # Solver Configuration
    z3_path: str = Field(default="z3", description="Default Z3 executable")
    z3_binaries: dict[str, str] = Field(
        default_factory=dict,
        description="Per-version Z3 executables, e.g. {\"4.8.7\": \"/opt/z3-4.8.7/bin/z3\"}",
    )
    z3_versions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_Z3_VERSIONS),
        description="Solver release matrix",
    )
    solver_timeout: int = Field(
        default=300, ge=1, le=86400, description="Solver timeout per problem in seconds (-T:)"
    )
    solver_grace_period: float = Field(
        default=30.0,
        ge=0.0,
        le=600.0,
        description="Extra wall-clock time granted before the solver process is killed",
    )

    # Trace Parsing Configuration
    parse_timeout: float = Field(
        default=10.0, gt=0.0, le=3600.0, description="Parse timeout per trace log in seconds"
    )

    # Cache Configuration
    cache_enabled: bool = Field(
        default=True,
        description="Enable the log cache store",
    )
    cache_dir: str = Field(
        default="./cache",
        description="Directory for cache storage",
    )
    cache_max_size_mb: int = Field(
        default=1024,
        ge=1,
        le=102400,
        description="Maximum cache size in megabytes (default: 1024 = 1GB)",
    )

    # Failure Diagnostics
    failure_archive_name: str = Field(
        default="failing_logs.tar.gz", description="File name of the failing logs archive"
    )
    archive_on_failure: bool = Field(
        default=True, description="Archive the logs directory when a check fails"
    )
    github_output: str | None = Field(
        default=None, description="Step output file exported by the CI runner (GITHUB_OUTPUT)"
    )

    # Logging
    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    @field_validator("z3_versions")
    @classmethod
    def _versions_not_empty(cls, value: list[str]) -> list[str]:
        versions = [v.strip() for v in value if v.strip()]
        if not versions:
            raise ValueError("z3_versions must name at least one release")
        return versions

    def z3_path_for(self, version: str | None) -> str:
        """Return the Z3 executable configured for a release (falls back to z3_path)."""
        if version is None:
            return self.z3_path
        return self.z3_binaries.get(version, self.z3_path)
