"""
Z3 trace log producer.

This module runs Z3 as an external process on a problem file with tracing
enabled, so that Z3 writes its trace log next to the other corpus logs:

    z3 trace=true -T:<timeout> trace-file-name=<log> <problem>

Z3's standard output (the check-sat answers) is discarded; only the trace file
matters. The process is awaited asynchronously with a wall-clock guard on top
of Z3's own timeout.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path

from src.domain.exceptions import SolverExecutionError

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"Z3 version (\d+\.\d+\.\d+)")


@dataclass(frozen=True)
class TraceRun:
    """A completed tracing run."""

    problem: Path
    log_file: Path
    returncode: int
    elapsed_seconds: float
    stderr: str


class Z3Tracer:
    """
    Z3 executor that produces trace logs.

    Attributes:
        _z3_path: Path to Z3 executable (default: "z3")
        _grace_period: Seconds granted beyond Z3's own timeout before the
            process is killed
    """

    def __init__(self, z3_path: str = "z3", grace_period: float = 30.0):
        """
        Initialize Z3 tracer.

        Args:
            z3_path: Path to Z3 executable (default: "z3" from PATH)
            grace_period: Extra wall-clock seconds before the process is killed
        """
        self._z3_path = z3_path
        self._grace_period = grace_period
        logger.info(f"Initialized Z3Tracer with path: {z3_path}")

    @property
    def z3_path(self) -> str:
        return self._z3_path

    def build_command(self, problem: Path, log_file: Path, timeout: int) -> list[str]:
        """Command line for tracing one problem."""
        return [
            self._z3_path,
            "trace=true",
            f"-T:{timeout}",
            f"trace-file-name={log_file}",
            str(problem),
        ]

    async def trace(self, problem: str | Path, log_file: str | Path, timeout: int = 300) -> TraceRun:
        """
        Run Z3 on a problem and write its trace log.

        Args:
            problem: SMT-LIB problem file
            log_file: Destination of the trace log
            timeout: Z3 timeout in seconds (passed as -T:)

        Returns:
            TraceRun describing the completed process

        Raises:
            SolverExecutionError: If Z3 cannot be started, exits non-zero, or exceeds
                the wall-clock guard
        """
        problem = Path(problem)
        log_file = Path(log_file)
        command = self.build_command(problem, log_file, timeout)
        logger.debug(f"Running: {' '.join(command)}")

        start = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            logger.error(f"Z3 executable not found at: {self._z3_path}")
            raise SolverExecutionError(
                f"Z3 executable not found at '{self._z3_path}'. "
                "Please install Z3 or specify correct path.",
                problem=str(problem),
            ) from e
        except OSError as e:
            logger.error(f"Could not start Z3 at {self._z3_path}: {e}")
            raise SolverExecutionError(
                f"Could not start Z3 at '{self._z3_path}': {e}",
                problem=str(problem),
            ) from e

        try:
            _, stderr_bytes = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout + self._grace_period,
            )
        except TimeoutError as e:
            logger.error(f"Z3 did not stop within {timeout + self._grace_period}s, killing it")
            process.kill()
            await process.wait()
            raise SolverExecutionError(
                f"Z3 exceeded the wall-clock limit on {problem}",
                problem=str(problem),
            ) from e

        elapsed = time.monotonic() - start
        stderr = stderr_bytes.decode("utf-8", errors="replace") if stderr_bytes else ""

        if process.returncode != 0:
            raise SolverExecutionError(
                f"Z3 exited with code {process.returncode} on {problem}",
                problem=str(problem),
                returncode=process.returncode,
                stderr=stderr,
            )

        logger.debug(f"Z3 finished {problem} in {elapsed:.2f}s")
        return TraceRun(
            problem=problem,
            log_file=log_file,
            returncode=process.returncode,
            elapsed_seconds=elapsed,
            stderr=stderr,
        )

    async def version(self) -> str | None:
        """
        Release reported by `z3 --version`.

        Returns:
            Version string such as "4.12.2", or None if Z3 cannot be run or
            its output is not recognised
        """
        try:
            process = await asyncio.create_subprocess_exec(
                self._z3_path,
                "--version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            logger.warning(f"Could not query Z3 version: {self._z3_path} not found")
            return None
        except OSError as e:
            logger.warning(f"Could not query Z3 version at {self._z3_path}: {e}")
            return None

        try:
            stdout_bytes, _ = await asyncio.wait_for(process.communicate(), timeout=30.0)
        except TimeoutError:
            logger.warning(f"Z3 at {self._z3_path} did not report its version in time")
            process.kill()
            await process.wait()
            return None

        match = _VERSION_RE.search(stdout_bytes.decode("utf-8", errors="replace"))
        return match.group(1) if match else None
