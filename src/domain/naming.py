"""Naming conventions for trace logs and cache entries.

Log files are named after the problem they were produced from and the SHA-256
of that problem's content, so a log is regenerated exactly when its problem
changes:

    <problem_basename>_fHash_<sha256>.log

The logs directory of one solver release is cached under

    logs-<version with '.' replaced by '_'>-<hash over all problem files>
"""

import hashlib
import re
from collections.abc import Iterable
from pathlib import Path

from src.domain.models import CacheKey, ProblemFile, SolverVersion

LOG_HASH_MARKER = "_fHash_"
LOG_SUFFIX = ".log"
CACHE_KEY_PREFIX = "logs"

_CHUNK_SIZE = 1024 * 1024
_LOG_NAME_RE = re.compile(r"^(?P<base>.+)_fHash_(?P<hash>[0-9a-f]{64})\.log$")


def sanitize_version(version: str) -> str:
    """Make a release identifier usable as a cache key fragment.

    Examples:
        >>> sanitize_version("4.12.2")
        '4_12_2'
    """
    return version.strip().replace(".", "_")


def solver_version(version: str) -> SolverVersion:
    """Build a SolverVersion from a release identifier."""
    raw = version.strip()
    return SolverVersion(raw=raw, sanitized=sanitize_version(raw))


def _file_digest(path: Path) -> bytes:
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.digest()


def file_sha256(path: str | Path) -> str:
    """SHA-256 hex digest of a file's content."""
    return _file_digest(Path(path)).hex()


def problem_base_name(path: str | Path) -> str:
    """File name of a problem without directory and last extension."""
    return Path(path).stem


def log_file_name(problem_path: str | Path, file_hash: str) -> str:
    """Name of the trace log produced from a problem file with the given hash."""
    return f"{problem_base_name(problem_path)}{LOG_HASH_MARKER}{file_hash}{LOG_SUFFIX}"


def stale_log_glob(problem_path: str | Path) -> str:
    """Glob matching every log ever produced for a problem of this name."""
    return f"{glob_escape(problem_base_name(problem_path))}{LOG_HASH_MARKER}*{LOG_SUFFIX}"


def glob_escape(text: str) -> str:
    """Escape glob metacharacters so text only matches itself."""
    return re.sub(r"([*?\[])", r"[\1]", text)


def parse_log_file_name(name: str) -> tuple[str, str] | None:
    """Split a log file name into (problem basename, problem hash).

    Returns None for names that do not follow the log naming convention.
    """
    match = _LOG_NAME_RE.match(Path(name).name)
    if match is None:
        return None
    return match.group("base"), match.group("hash")


def describe_problem(path: str | Path) -> ProblemFile:
    """Hash a problem file and describe it."""
    path = Path(path)
    return ProblemFile(path=str(path), base_name=problem_base_name(path), sha256=file_sha256(path))


def discover_problems(problems_dir: str | Path, pattern: str = "**/*.smt2") -> list[Path]:
    """All regular files under problems_dir matching pattern, in sorted order."""
    root = Path(problems_dir)
    if not root.is_dir():
        return []
    return sorted(p for p in root.glob(pattern) if p.is_file())


def corpus_hash(paths: Iterable[str | Path]) -> str:
    """Hash over a set of files.

    Every file is hashed individually and the final hash is taken over the
    concatenated binary digests in sorted path order. An empty set hashes to
    the empty string, so keys stay stable for an empty corpus.
    """
    ordered = sorted(Path(p) for p in paths)
    if not ordered:
        return ""
    combined = hashlib.sha256()
    for path in ordered:
        combined.update(_file_digest(path))
    return combined.hexdigest()


def cache_key(version: str | SolverVersion, corpus_digest: str) -> CacheKey:
    """Cache key of the logs directory for a release and a corpus hash."""
    if isinstance(version, str):
        version = solver_version(version)
    prefix = f"{CACHE_KEY_PREFIX}-{version.sanitized}-"
    return CacheKey(
        version=version,
        corpus_hash=corpus_digest,
        key=f"{prefix}{corpus_digest}",
        restore_prefix=prefix,
    )


def artifact_name(version: str) -> str:
    """Name of the diagnostic artifact uploaded for a failing release."""
    return f"logs_z3_v{version}"
