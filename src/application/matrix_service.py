"""Matrix service running the corpus workflow once per solver release.

For every release: compute the cache key, restore the logs directory from the
cache, generate the missing logs, save the cache unless the key was an exact
hit, and check the logs. A failing release does not stop the others.
"""

import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from src.application.log_check_service import LogCheckService
from src.application.log_generation_service import LogGenerationService
from src.domain.exceptions import CorpusError
from src.domain.models import CacheHit, CacheKey, MatrixReport, SolverVersion, VersionRunResult
from src.domain.naming import artifact_name, cache_key, corpus_hash, discover_problems, solver_version

if TYPE_CHECKING:
    from src.domain.protocols import LogCache, TraceProducer
    from src.shared.config import Settings

logger = logging.getLogger(__name__)


def compute_cache_key(version: str, problems_dir: str | Path, pattern: str = "**/*.smt2") -> CacheKey:
    """Cache key of a release for the current content of the corpus."""
    return cache_key(version, corpus_hash(discover_problems(problems_dir, pattern)))


class MatrixService:
    """Orchestrates cache restore, log generation, cache save and check per release."""

    def __init__(
        self,
        tracer_factory: Callable[[str], "TraceProducer"],
        cache: "LogCache | None",
        settings: "Settings",
    ):
        """Initialize matrix service.

        Args:
            tracer_factory: Returns the tracer running a given release
            cache: Log cache store, None to run without caching
            settings: Application settings
        """
        self.tracer_factory = tracer_factory
        self.cache = cache
        self.settings = settings
        self.check_service = LogCheckService(
            parse_timeout=settings.parse_timeout,
            archive_on_failure=settings.archive_on_failure,
            archive_name=settings.failure_archive_name,
        )

    def logs_dir_for(self, version: SolverVersion) -> Path:
        """Logs directory of one release."""
        return Path(self.settings.logs_dir) / version.sanitized

    async def run(self, versions: list[str] | None = None) -> MatrixReport:
        """Run every release of the matrix (no fail-fast).

        Args:
            versions: Releases to run (default: settings.z3_versions)

        Returns:
            MatrixReport with one result per release
        """
        versions = versions or self.settings.z3_versions
        logger.info(f"Starting matrix run for {len(versions)} releases: {', '.join(versions)}")
        matrix_start = time.time()

        results = []
        for version in versions:
            result = await self.run_version(version)
            status = "passed" if result.passed else "failed"
            logger.info(f"=== Z3 {version}: {status} ===")
            results.append(result)

        report = MatrixReport(results=results)
        logger.info(
            f"Matrix run finished in {time.time() - matrix_start:.1f}s: "
            f"{sum(1 for r in results if r.passed)}/{len(results)} releases passed"
        )
        return report

    async def run_version(self, version: str) -> VersionRunResult:
        """Run the workflow for one release."""
        sv = solver_version(version)
        key = compute_cache_key(sv.raw, self.settings.problems_dir, self.settings.problem_glob)
        result = VersionRunResult(version=sv, cache_key=key.key)
        logs_dir = self.logs_dir_for(sv)
        logger.info(f"=== Z3 {sv.raw} (cache key {key.key}) ===")

        tracer = self.tracer_factory(sv.raw)
        result.installed_version = await tracer.version()
        if result.installed_version is None:
            logger.warning(f"Could not determine installed version of Z3 for release {sv.raw}")
        elif result.installed_version != sv.raw:
            logger.warning(
                f"Requested Z3 {sv.raw} but the installed solver reports {result.installed_version}"
            )

        try:
            if self.cache is not None:
                result.restore = await self.cache.restore(
                    key.key, logs_dir, restore_keys=[key.restore_prefix]
                )

            generator = LogGenerationService(tracer, solver_timeout=self.settings.solver_timeout)
            result.generation = await generator.generate(
                self.settings.problems_dir,
                logs_dir,
                pattern=self.settings.problem_glob,
                solver_version=sv.raw,
            )

            if self.cache is not None and (
                result.restore is None or result.restore.hit != CacheHit.EXACT
            ):
                result.cache_saved = await self.cache.save(key.key, logs_dir)

            archive_dir = Path(self.settings.logs_dir) / artifact_name(sv.raw)
            result.check = await self.check_service.check(logs_dir, archive_dir=archive_dir)
            if result.check.archive_path:
                result.artifact_name = artifact_name(sv.raw)
        except CorpusError as e:
            logger.error(f"Z3 {sv.raw} failed: {e}")
            result.error = str(e)

        return result
