"""Domain-level exceptions for the trace corpus.

These exceptions represent expected failures (a solver run failing, a log that
does not parse), not programming errors.
"""


class CorpusError(Exception):
    """Base exception for all corpus errors."""
    pass


class SolverExecutionError(CorpusError):
    """Raised when a solver invocation does not complete successfully."""

    def __init__(self, message: str, problem: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.problem = problem
        self.returncode = returncode
        self.stderr = stderr


class TraceParseError(CorpusError):
    """Raised when a trace log line cannot be interpreted."""

    def __init__(self, message: str, line_no: int | None = None, line: str = ""):
        super().__init__(message)
        self.line_no = line_no
        self.line = line

    def __str__(self) -> str:
        if self.line_no is None:
            return super().__str__()
        return f"line {self.line_no}: {super().__str__()} ({self.line!r})"


class CacheError(CorpusError):
    """Raised when the log cache store cannot read or write an entry."""
    pass
