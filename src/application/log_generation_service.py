"""Log generation service producing one trace log per corpus problem.

This is the application layer that coordinates the naming rules with the
solver. A log is only produced when no log exists for the problem's current
content; logs of earlier versions of the problem are removed first.
"""

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING

from src.domain.exceptions import SolverExecutionError
from src.domain.models import CorpusRunReport, ProblemFile, ProblemOutcome, ProblemStatus
from src.domain.naming import describe_problem, discover_problems, log_file_name, parse_log_file_name, stale_log_glob
from src.shared.result import Err, Ok, Result

if TYPE_CHECKING:
    from src.domain.protocols import TraceProducer

logger = logging.getLogger(__name__)


class LogGenerationService:
    """Runs the solver over a problem corpus, writing missing trace logs."""

    def __init__(self, tracer: "TraceProducer", solver_timeout: int = 300):
        """Initialize log generation service.

        Args:
            tracer: Solver that writes trace logs
            solver_timeout: Solver timeout per problem in seconds
        """
        self.tracer = tracer
        self.solver_timeout = solver_timeout

    async def generate(
        self,
        problems_dir: str | Path,
        logs_dir: str | Path,
        pattern: str = "**/*.smt2",
        solver_version: str | None = None,
    ) -> CorpusRunReport:
        """Produce the trace logs missing from logs_dir.

        Problems are processed one at a time in sorted path order. A failing
        problem is reported and processing continues with the next one.

        Args:
            problems_dir: Root of the problem corpus
            logs_dir: Directory receiving the logs (created if missing)
            pattern: Glob selecting the problem files
            solver_version: Release used, recorded in the report

        Returns:
            CorpusRunReport with one outcome per problem
        """
        logs_dir = Path(logs_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)
        start = time.time()

        problems = [describe_problem(path) for path in discover_problems(problems_dir, pattern)]
        logger.info(f"Found {len(problems)} problems under {problems_dir}")

        # Logs of the current corpus; two problems may share a basename
        expected = {log_file_name(p.path, p.sha256) for p in problems}

        outcomes = []
        for problem in problems:
            outcomes.append(await self._process(problem, logs_dir, expected))

        report = CorpusRunReport(
            solver_version=solver_version,
            logs_dir=str(logs_dir),
            outcomes=outcomes,
            total_time_seconds=time.time() - start,
        )
        logger.info(
            f"Log generation finished: generated={report.generated}, "
            f"skipped={report.skipped}, failed={report.failed} "
            f"({report.total_time_seconds:.1f}s)"
        )
        return report

    def remove_stale_logs(self, problem: ProblemFile, logs_dir: Path, keep: set[str]) -> list[str]:
        """Delete logs produced from earlier contents of a problem.

        Returns:
            Names of the deleted log files
        """
        removed = []
        for path in sorted(logs_dir.glob(stale_log_glob(problem.path))):
            parsed = parse_log_file_name(path.name)
            if parsed is None or parsed[0] != problem.base_name or path.name in keep:
                continue
            path.unlink(missing_ok=True)
            removed.append(path.name)
            logger.info(f"Removed stale log {path.name}")
        return removed

    async def _process(self, problem: ProblemFile, logs_dir: Path, expected: set[str]) -> ProblemOutcome:
        log_file = logs_dir / log_file_name(problem.path, problem.sha256)

        if log_file.exists():
            logger.debug(f"Log {log_file} exists, skipping {problem.path}")
            return ProblemOutcome(problem=problem, log_file=str(log_file), status=ProblemStatus.SKIPPED)

        removed = self.remove_stale_logs(problem, logs_dir, expected)
        logger.info(f"Processing {problem.path} to {log_file}")

        start = time.time()
        result = await self._trace(problem, log_file)
        elapsed = time.time() - start

        match result:
            case Ok(_):
                return ProblemOutcome(
                    problem=problem,
                    log_file=str(log_file),
                    status=ProblemStatus.GENERATED,
                    removed_stale_logs=removed,
                    elapsed_seconds=elapsed,
                )
            case Err(error):
                logger.error(f"!!! Error processing {problem.path}: {error}")
                return ProblemOutcome(
                    problem=problem,
                    log_file=str(log_file),
                    status=ProblemStatus.FAILED,
                    removed_stale_logs=removed,
                    error=str(error),
                    elapsed_seconds=elapsed,
                )

    async def _trace(self, problem: ProblemFile, log_file: Path) -> Result[Path, SolverExecutionError]:
        try:
            await self.tracer.trace(problem.path, log_file, timeout=self.solver_timeout)
        except SolverExecutionError as e:
            return Err(e)
        return Ok(log_file)
