"""Protocol definitions for dependency inversion.

These protocols define interfaces that infrastructure implementations must satisfy.
The application services depend on them rather than on the concrete Z3 tracer
and cache store, so tests can substitute fakes.
"""

from pathlib import Path
from typing import Any, Protocol

from src.domain.models import CacheRestoreResult


class TraceProducer(Protocol):
    """Protocol for a solver that writes trace logs."""

    async def trace(self, problem: str | Path, log_file: str | Path, timeout: int = 300) -> Any:
        """Run the solver on a problem, writing its trace to log_file.

        Args:
            problem: SMT-LIB problem file
            log_file: Destination of the trace log
            timeout: Solver timeout in seconds

        Raises:
            SolverExecutionError: If the solver run fails
        """
        ...

    async def version(self) -> str | None:
        """Release reported by the solver, None if unknown."""
        ...


class LogCache(Protocol):
    """Protocol for the keyed store of logs directories."""

    async def save(self, key: str, logs_dir: str | Path) -> bool:
        """Store logs_dir under key.

        Returns:
            True if a new entry was written, False if key already existed

        Raises:
            CacheError: If the entry cannot be written
        """
        ...

    async def restore(
        self,
        key: str,
        logs_dir: str | Path,
        restore_keys: list[str] | None = None,
    ) -> CacheRestoreResult:
        """Restore logs_dir from key or the newest entry matching a restore prefix.

        Raises:
            CacheError: If the entry cannot be extracted
        """
        ...
