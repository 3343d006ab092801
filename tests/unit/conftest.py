"""Test configuration and fixtures.

Provides:
- Python path setup for imports
- A small problem corpus on disk
- A mocked Z3 tracer that writes trace logs
- Sample trace logs
"""

import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from src.domain.exceptions import SolverExecutionError  # noqa: E402

# ============================================================================
# Sample Data
# ============================================================================

# Two instantiations of q1; the second is matched on a term produced by the first.
SAMPLE_TRACE = """\
[tool-version] Z3 4.12.2
[mk-var] #1 0
[mk-app] #2 f #1
[mk-app] #3 pattern #2
[mk-app] #4 g #2
[mk-quant] #5 q1 1 #3 #4
[attach-var-names] #5 (|x| ; |Int|)
[mk-app] #6 a
[mk-app] #7 f #6
[attach-enode] #7 0
[new-match] 0x1 #5 #3 #6 ; #7
[mk-app] #8 g #7
[instance] 0x1 #8 ; 1
[mk-app] #9 f #8
[attach-enode] #8 1
[attach-enode] #9 1
[end-of-instance]
[new-match] 0x2 #5 #3 #8 ; #9
[instance] 0x2 ; 2
[end-of-instance]
[push] 1
"""

VALID_TRACE = "[tool-version] Z3 4.12.2\n[mk-app] #1 true\n"
MALFORMED_TRACE = "[tool-version] Z3 4.12.2\n[mk-app] #1 f #99\n"

SAMPLE_PROBLEM = """(set-logic UF)
(declare-fun f (Int) Int)
(assert (forall ((x Int)) (! (> (f x) 0) :pattern ((f x)))))
(check-sat)
"""


@pytest.fixture
def sample_trace() -> str:
    """Trace log with two dependent instantiations."""
    return SAMPLE_TRACE


@pytest.fixture
def problems_dir(tmp_path: Path) -> Path:
    """Corpus with two problems, one in a subdirectory."""
    root = tmp_path / "smt-problems"
    (root / "nested").mkdir(parents=True)
    (root / "alpha.smt2").write_text(SAMPLE_PROBLEM)
    (root / "nested" / "beta.smt2").write_text(SAMPLE_PROBLEM.replace("> (f x) 0", "> (f x) 1"))
    (root / "notes.txt").write_text("not a problem")
    return root


# ============================================================================
# Mock Providers
# ============================================================================


def make_tracer(log_content: str = VALID_TRACE, fail_on: tuple[str, ...] = (), installed: str | None = "4.12.2"):
    """Create a mock tracer writing log_content for every problem.

    Problems whose file name is in fail_on raise SolverExecutionError instead.
    """
    mock = AsyncMock()

    async def trace(problem, log_file, timeout=300):
        if Path(problem).name in fail_on:
            raise SolverExecutionError(f"Z3 exited with code 1 on {problem}", problem=str(problem), returncode=1)
        Path(log_file).write_text(log_content)

    mock.trace = AsyncMock(side_effect=trace)
    mock.version = AsyncMock(return_value=installed)
    return mock


@pytest.fixture
def mock_tracer() -> AsyncMock:
    """Mock tracer writing a valid trace log for every problem."""
    return make_tracer()


@pytest.fixture
def tracer_factory():
    """Factory for mock tracers with custom log content or failures."""
    return make_tracer


@pytest.fixture
def malformed_trace() -> str:
    return MALFORMED_TRACE


@pytest.fixture
def non_executable_z3(tmp_path: Path) -> Path:
    """A z3 file that exists but cannot be executed."""
    z3 = tmp_path / "bin" / "z3"
    z3.parent.mkdir()
    z3.write_text("not a binary\n")
    z3.chmod(0o644)
    return z3
