"""Gzip tarball helpers for the logs directory.

Used both by the cache store (one archive per cache key) and for the
diagnostic archive written when a check fails.
"""

import logging
import tarfile
from pathlib import Path

logger = logging.getLogger(__name__)


def archive_directory(source_dir: str | Path, destination: str | Path) -> Path:
    """Write source_dir as a gzip tarball.

    The archive holds a single top-level directory named like source_dir, the
    same layout as `tar -czf destination source_dir/`.

    Returns:
        Path of the written archive
    """
    source_dir = Path(source_dir)
    destination = Path(destination)
    if not source_dir.is_dir():
        raise FileNotFoundError(f"Cannot archive missing directory {source_dir}")

    destination.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(destination, "w:gz") as tar:
        tar.add(source_dir, arcname=source_dir.name)

    logger.info(f"Archived {source_dir} to {destination}")
    return destination


def _is_safe_member(member: tarfile.TarInfo, extract_dir: Path) -> bool:
    """Reject absolute paths, '..' components, links and special files."""
    if member.name.startswith("/") or member.name.startswith("\\"):
        return False
    if ".." in member.name.split("/"):
        return False
    resolved = (extract_dir / member.name).resolve()
    try:
        resolved.relative_to(extract_dir.resolve())
    except ValueError:
        return False
    return member.isfile() or member.isdir()


def extract_archive(archive: str | Path, extract_dir: str | Path, strip_top_level: bool = True) -> int:
    """Extract a gzip tarball written by archive_directory.

    Args:
        archive: Tarball to extract
        extract_dir: Directory receiving the files
        strip_top_level: Drop the archive's top-level directory so its content
            lands directly in extract_dir

    Returns:
        Number of regular files extracted
    """
    extract_dir = Path(extract_dir)
    extract_dir.mkdir(parents=True, exist_ok=True)
    file_count = 0

    with tarfile.open(archive, "r:gz") as tar:
        for member in tar.getmembers():
            if strip_top_level:
                parts = member.name.split("/", 1)
                if len(parts) < 2 or not parts[1]:
                    continue
                member.name = parts[1]
            if not _is_safe_member(member, extract_dir):
                logger.warning(f"Skipping unsafe tar member: {member.name}")
                continue
            tar.extract(member, path=extract_dir, set_attrs=False, filter="data")
            if member.isfile():
                file_count += 1

    return file_count
