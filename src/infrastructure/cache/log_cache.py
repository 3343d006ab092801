"""
Keyed store of logs-directory archives with prefix restore and LRU eviction.

This module keeps one gzip tarball per cache key, mirroring how a CI cache
action keeps the `logs` directory between runs:
- Exact-key restore, falling back to the newest entry matching a restore prefix
- Entries are immutable: saving under an existing key is a no-op
- Atomic writes (write-to-temp + rename) so readers never see partial archives
- fcntl shared locks when reading entry metadata
- LRU (least recently used) eviction when the size limit is reached
"""

import asyncio
import fcntl
import logging
import pickle
import re
import tarfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from src.domain.exceptions import CacheError
from src.domain.models import CacheHit, CacheRestoreResult
from src.infrastructure.archive import archive_directory, extract_archive

logger = logging.getLogger(__name__)

_ARCHIVE_SUFFIX = ".tar.gz"
_META_SUFFIX = ".meta.pkl"
_KEY_RE = re.compile(r"^[A-Za-z0-9._-]{1,512}$")


@dataclass
class CacheEntry:
    """Metadata of one cached archive, used for prefix matching and LRU."""

    key: str
    created_at: float
    last_accessed_at: float
    size_bytes: int


class LogCacheStore:
    """
    File-based store of logs-directory archives.

    Layout:
        <cache_dir>/<key>.tar.gz      archive of the logs directory
        <cache_dir>/<key>.meta.pkl    pickled CacheEntry
    """

    def __init__(self, cache_dir: str | Path, max_size_mb: int = 1024) -> None:
        """
        Initialize the store.

        Args:
            cache_dir: Root directory for cache storage
            max_size_mb: Maximum total archive size in megabytes (default: 1024 = 1GB)
        """
        self.cache_dir = Path(cache_dir)
        self.max_size_bytes = max_size_mb * 1024 * 1024
        self._lock = asyncio.Lock()

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initialized LogCacheStore: dir={cache_dir}, max_size={max_size_mb}MB")

    @staticmethod
    def validate_key(key: str) -> None:
        """Raise CacheError for keys that cannot be used as file names."""
        if not _KEY_RE.match(key):
            raise CacheError(f"Invalid cache key: {key!r}")

    def _archive_path(self, key: str) -> Path:
        return self.cache_dir / f"{key}{_ARCHIVE_SUFFIX}"

    def _meta_path(self, key: str) -> Path:
        return self.cache_dir / f"{key}{_META_SUFFIX}"

    async def _atomic_write(self, file_path: Path, data: bytes) -> None:
        """
        Atomically write data to file (write-to-temp + rename).

        Raises:
            CacheError: If write fails
        """
        temp_path = file_path.with_name(file_path.name + ".tmp")
        try:
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(data)
            await aiofiles.os.rename(str(temp_path), str(file_path))
        except OSError as e:
            if temp_path.exists():
                await aiofiles.os.remove(str(temp_path))
            raise CacheError(f"Failed to write cache file {file_path}: {e}") from e

    async def _read_entry(self, key: str) -> CacheEntry | None:
        """Read entry metadata under a shared lock, None if missing or unreadable."""
        meta_path = self._meta_path(key)
        if not meta_path.exists() or not self._archive_path(key).exists():
            return None

        try:
            async with aiofiles.open(meta_path, "rb") as f:
                fd = f.fileno()
                fcntl.flock(fd, fcntl.LOCK_SH)
                try:
                    data = await f.read()
                finally:
                    fcntl.flock(fd, fcntl.LOCK_UN)
            entry: CacheEntry = pickle.loads(data)
        except (OSError, pickle.UnpicklingError, EOFError, ValueError) as e:
            logger.warning(f"Failed to read cache metadata {meta_path}: {e}")
            return None
        return entry

    async def _entries(self) -> list[CacheEntry]:
        entries = []
        for meta_path in self.cache_dir.glob(f"*{_META_SUFFIX}"):
            key = meta_path.name[: -len(_META_SUFFIX)]
            entry = await self._read_entry(key)
            if entry is not None:
                entries.append(entry)
        return entries

    async def has(self, key: str) -> bool:
        """Whether an entry exists for exactly this key."""
        return await self._read_entry(key) is not None

    async def save(self, key: str, logs_dir: str | Path) -> bool:
        """
        Archive logs_dir under key.

        Returns:
            True if a new entry was written, False if the key already existed

        Raises:
            CacheError: If the key is invalid or the archive cannot be written
        """
        self.validate_key(key)
        logs_dir = Path(logs_dir)
        if not logs_dir.is_dir():
            raise CacheError(f"Cannot cache missing directory {logs_dir}")

        async with self._lock:
            if await self.has(key):
                logger.info(f"Cache entry {key} already exists, not saving")
                return False

            archive_path = self._archive_path(key)
            temp_path = archive_path.with_name(archive_path.name + ".tmp")
            loop = asyncio.get_running_loop()
            try:
                await loop.run_in_executor(None, archive_directory, logs_dir, temp_path)
                await aiofiles.os.rename(str(temp_path), str(archive_path))
            except (OSError, tarfile.TarError) as e:
                if temp_path.exists():
                    await aiofiles.os.remove(str(temp_path))
                raise CacheError(f"Failed to archive {logs_dir} for {key}: {e}") from e

            now = time.time()
            entry = CacheEntry(
                key=key,
                created_at=now,
                last_accessed_at=now,
                size_bytes=archive_path.stat().st_size,
            )
            await self._atomic_write(self._meta_path(key), pickle.dumps(entry))
            logger.info(f"Cache saved: {key} ({entry.size_bytes} bytes)")

        await self._check_and_evict()
        return True

    async def _find_restore_candidate(self, restore_keys: list[str]) -> CacheEntry | None:
        entries = await self._entries()
        for prefix in restore_keys:
            matching = [e for e in entries if e.key.startswith(prefix)]
            if matching:
                return max(matching, key=lambda e: e.created_at)
        return None

    async def restore(
        self,
        key: str,
        logs_dir: str | Path,
        restore_keys: list[str] | None = None,
    ) -> CacheRestoreResult:
        """
        Restore logs_dir from the entry for key, or from the newest entry
        whose key starts with one of restore_keys.

        Args:
            key: Exact key to look up first
            logs_dir: Directory receiving the archived files
            restore_keys: Ordered key prefixes used when key is missing

        Returns:
            CacheRestoreResult with hit exact, partial or miss
        """
        self.validate_key(key)
        entry = await self._read_entry(key)
        hit = CacheHit.EXACT
        if entry is None:
            entry = await self._find_restore_candidate(restore_keys or [])
            hit = CacheHit.PARTIAL

        if entry is None:
            logger.info(f"Cache miss: {key}")
            return CacheRestoreResult(requested_key=key, hit=CacheHit.MISS)

        loop = asyncio.get_running_loop()
        try:
            restored = await loop.run_in_executor(
                None, extract_archive, self._archive_path(entry.key), Path(logs_dir)
            )
        except (OSError, tarfile.TarError) as e:
            raise CacheError(f"Failed to restore cache entry {entry.key}: {e}") from e

        entry.last_accessed_at = time.time()
        try:
            await self._atomic_write(self._meta_path(entry.key), pickle.dumps(entry))
        except CacheError as e:
            logger.debug(f"Failed to update access time for {entry.key}: {e}")

        logger.info(f"Cache {hit.value} hit: {entry.key} ({restored} files restored)")
        return CacheRestoreResult(
            requested_key=key,
            matched_key=entry.key,
            hit=hit,
            restored_files=restored,
        )

    async def delete(self, key: str) -> bool:
        """
        Delete cache entry by key.

        Returns:
            True if deleted, False if not found
        """
        deleted = False
        for path in (self._archive_path(key), self._meta_path(key)):
            if path.exists():
                await aiofiles.os.remove(str(path))
                deleted = True
        if deleted:
            logger.debug(f"Cache delete: {key}")
        return deleted

    async def list_keys(self, prefix: str | None = None) -> list[str]:
        """Keys of all entries, newest first, optionally filtered by prefix."""
        entries = await self._entries()
        if prefix:
            entries = [e for e in entries if e.key.startswith(prefix)]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return [e.key for e in entries]

    async def clear(self, prefix: str | None = None) -> int:
        """
        Delete all entries, optionally only those whose key starts with prefix.

        Returns:
            Number of entries deleted
        """
        async with self._lock:
            count = 0
            for key in await self.list_keys(prefix):
                if await self.delete(key):
                    count += 1
            logger.info(
                f"Cache clear: deleted {count} entries"
                + (f" with prefix '{prefix}'" if prefix else "")
            )
            return count

    async def _check_and_evict(self) -> None:
        """Evict least recently used entries until the store fits its size limit."""
        async with self._lock:
            entries = await self._entries()
            current_size = sum(e.size_bytes for e in entries)
            if current_size <= self.max_size_bytes:
                return

            logger.info(
                f"Cache size exceeded: {current_size / 1024 / 1024:.1f}MB / "
                f"{self.max_size_bytes / 1024 / 1024:.1f}MB - starting LRU eviction"
            )
            entries.sort(key=lambda e: e.last_accessed_at)

            evicted_count = 0
            freed_bytes = 0
            # The most recently used entry is kept even if it alone exceeds the limit
            for entry in entries[:-1]:
                if current_size - freed_bytes <= self.max_size_bytes:
                    break
                if await self.delete(entry.key):
                    evicted_count += 1
                    freed_bytes += entry.size_bytes

            logger.info(
                f"LRU eviction complete: evicted {evicted_count} entries, "
                f"freed {freed_bytes / 1024 / 1024:.1f}MB"
            )

    async def get_stats(self) -> dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dict with cache stats (size, entry count, etc.)
        """
        entries = await self._entries()
        total_size = sum(e.size_bytes for e in entries)
        return {
            "entry_count": len(entries),
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / 1024 / 1024, 2),
            "max_size_mb": self.max_size_bytes / 1024 / 1024,
            "utilization_percent": (
                round((total_size / self.max_size_bytes) * 100, 2) if self.max_size_bytes > 0 else 0
            ),
        }
