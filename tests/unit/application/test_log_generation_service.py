"""Unit tests for LogGenerationService.

Tests cover:
- Log naming and solver invocation
- Skipping problems whose log exists
- Stale log removal when a problem changes
- Continue-on-error for failing problems
- Progress logging
"""

import logging
from pathlib import Path

import pytest

from src.application.log_generation_service import LogGenerationService
from src.domain.models import ProblemStatus
from src.domain.naming import file_sha256
from src.infrastructure.smt import Z3Tracer


def _log_name(problem: Path) -> str:
    return f"{problem.stem}_fHash_{file_sha256(problem)}.log"


class TestLogGenerationService:
    """Tests for LogGenerationService."""

    @pytest.mark.asyncio
    async def test_generates_one_log_per_problem(self, problems_dir: Path, tmp_path: Path, mock_tracer) -> None:
        """Test every problem gets a log named after basename and hash."""
        logs_dir = tmp_path / "logs"
        service = LogGenerationService(mock_tracer, solver_timeout=120)

        report = await service.generate(problems_dir, logs_dir, solver_version="4.12.2")

        alpha = problems_dir / "alpha.smt2"
        beta = problems_dir / "nested" / "beta.smt2"
        assert report.generated == 2
        assert report.skipped == 0
        assert report.failed == 0
        assert report.solver_version == "4.12.2"
        assert sorted(p.name for p in logs_dir.iterdir()) == sorted([_log_name(alpha), _log_name(beta)])

        first_call = mock_tracer.trace.await_args_list[0]
        assert first_call.args == (str(alpha), logs_dir / _log_name(alpha))
        assert first_call.kwargs == {"timeout": 120}

    @pytest.mark.asyncio
    async def test_creates_logs_directory(self, problems_dir: Path, tmp_path: Path, mock_tracer) -> None:
        logs_dir = tmp_path / "deep" / "logs"
        await LogGenerationService(mock_tracer).generate(problems_dir, logs_dir)
        assert logs_dir.is_dir()

    @pytest.mark.asyncio
    async def test_existing_logs_are_skipped(self, problems_dir: Path, tmp_path: Path, mock_tracer) -> None:
        """Test a second run does not invoke the solver again."""
        logs_dir = tmp_path / "logs"
        service = LogGenerationService(mock_tracer)
        await service.generate(problems_dir, logs_dir)
        mock_tracer.trace.reset_mock()

        report = await service.generate(problems_dir, logs_dir)

        assert report.skipped == 2
        assert report.generated == 0
        mock_tracer.trace.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_changed_problem_replaces_stale_log(self, problems_dir: Path, tmp_path: Path, mock_tracer) -> None:
        """Test editing a problem regenerates its log and removes the old one."""
        logs_dir = tmp_path / "logs"
        service = LogGenerationService(mock_tracer)
        alpha = problems_dir / "alpha.smt2"
        await service.generate(problems_dir, logs_dir)
        old_log = _log_name(alpha)

        alpha.write_text("(check-sat)\n")
        report = await service.generate(problems_dir, logs_dir)

        outcome = next(o for o in report.outcomes if o.problem.base_name == "alpha")
        assert outcome.status == ProblemStatus.GENERATED
        assert outcome.removed_stale_logs == [old_log]
        assert not (logs_dir / old_log).exists()
        assert (logs_dir / _log_name(alpha)).exists()
        assert report.skipped == 1

    @pytest.mark.asyncio
    async def test_stale_removal_ignores_other_problems(self, problems_dir: Path, tmp_path: Path, mock_tracer) -> None:
        """Test logs of a different basename sharing a prefix are kept."""
        logs_dir = tmp_path / "logs"
        logs_dir.mkdir()
        foreign = logs_dir / f"alpha_fHash_x_fHash_{'0' * 64}.log"
        foreign.write_text("")

        await LogGenerationService(mock_tracer).generate(problems_dir, logs_dir)

        assert foreign.exists()

    @pytest.mark.asyncio
    async def test_same_basename_in_two_directories(self, tmp_path: Path, mock_tracer) -> None:
        """Test problems sharing a basename do not remove each other's logs."""
        problems = tmp_path / "problems"
        (problems / "a").mkdir(parents=True)
        (problems / "b").mkdir(parents=True)
        (problems / "a" / "p.smt2").write_text("one")
        (problems / "b" / "p.smt2").write_text("two")
        logs_dir = tmp_path / "logs"

        report = await LogGenerationService(mock_tracer).generate(problems, logs_dir)

        assert report.generated == 2
        assert len(list(logs_dir.glob("p_fHash_*.log"))) == 2

    @pytest.mark.asyncio
    async def test_failing_problem_does_not_stop_run(
        self, problems_dir: Path, tmp_path: Path, tracer_factory, caplog
    ) -> None:
        """Test a solver failure is reported and the next problem still runs."""
        caplog.set_level(logging.INFO)
        tracer = tracer_factory(fail_on=("alpha.smt2",))
        logs_dir = tmp_path / "logs"

        report = await LogGenerationService(tracer).generate(problems_dir, logs_dir)

        assert report.failed == 1
        assert report.generated == 1
        failed = report.outcomes[0]
        assert failed.status == ProblemStatus.FAILED
        assert "exited with code 1" in failed.error
        assert f"!!! Error processing {problems_dir / 'alpha.smt2'}" in caplog.text
        assert tracer.trace.await_count == 2

    @pytest.mark.asyncio
    async def test_solver_that_cannot_start_fails_each_problem(
        self, problems_dir: Path, tmp_path: Path, non_executable_z3: Path
    ) -> None:
        """Test a solver that cannot be spawned is reported per problem."""
        tracer = Z3Tracer(z3_path=str(non_executable_z3))

        report = await LogGenerationService(tracer).generate(problems_dir, tmp_path / "logs")

        assert report.failed == 2
        assert report.generated == 0
        assert all("Could not start Z3" in outcome.error for outcome in report.outcomes)

    @pytest.mark.asyncio
    async def test_progress_is_logged(self, problems_dir: Path, tmp_path: Path, mock_tracer, caplog) -> None:
        caplog.set_level(logging.INFO)
        logs_dir = tmp_path / "logs"
        alpha = problems_dir / "alpha.smt2"

        await LogGenerationService(mock_tracer).generate(problems_dir, logs_dir)

        assert f"Processing {alpha} to {logs_dir / _log_name(alpha)}" in caplog.text

    @pytest.mark.asyncio
    async def test_empty_corpus(self, tmp_path: Path, mock_tracer) -> None:
        report = await LogGenerationService(mock_tracer).generate(tmp_path / "none", tmp_path / "logs")
        assert report.outcomes == []
        mock_tracer.trace.assert_not_awaited()
