"""Log check service parsing every trace log of a logs directory.

A log that fails to parse fails the check. A log whose parsing does not finish
within the parse timeout is reported but does not fail it. When the check
fails, the logs directory can be archived for inspection.
"""

import asyncio
import logging
import time
from pathlib import Path

from src.domain.exceptions import TraceParseError
from src.domain.models import LogCheckEntry, LogCheckReport, LogCheckStatus
from src.domain.trace.parser import Z3TraceParser
from src.infrastructure.archive import archive_directory

logger = logging.getLogger(__name__)


class LogCheckService:
    """Parses trace logs and archives them when parsing fails."""

    def __init__(
        self,
        parse_timeout: float = 10.0,
        archive_on_failure: bool = True,
        archive_name: str = "failing_logs.tar.gz",
    ):
        self.parse_timeout = parse_timeout
        self.archive_on_failure = archive_on_failure
        self.archive_name = archive_name

    def check_file(self, log_file: str | Path) -> LogCheckEntry:
        """Parse one trace log."""
        log_file = Path(log_file)
        logger.info(f"Parsing {log_file}")
        start = time.time()
        try:
            timed_out, parser = Z3TraceParser.parse_file(log_file, timeout=self.parse_timeout)
        except (TraceParseError, OSError) as e:
            logger.error(f"Failed to parse {log_file}: {e}")
            return LogCheckEntry(
                log_file=str(log_file),
                status=LogCheckStatus.FAILED,
                error=str(e),
                elapsed_seconds=time.time() - start,
            )
        elapsed = time.time() - start

        if timed_out:
            logger.info(f"Skipping {log_file} after {self.parse_timeout}s")
            status = LogCheckStatus.TIMED_OUT
        else:
            logger.info(f"Finished parsing after {elapsed:.2f} seconds")
            status = LogCheckStatus.PARSED

        return LogCheckEntry(
            log_file=str(log_file),
            status=status,
            elapsed_seconds=elapsed,
            instantiation_count=len(parser.instantiations),
        )

    async def check(self, logs_dir: str | Path, archive_dir: str | Path | None = None) -> LogCheckReport:
        """
        Parse every *.log file of logs_dir in sorted order.

        Args:
            logs_dir: Directory holding the trace logs
            archive_dir: Where the failure archive is written (default: the
                parent of logs_dir)

        Returns:
            LogCheckReport; archive_path is set when a failure archive was written
        """
        logs_dir = Path(logs_dir)
        log_files = sorted(p for p in logs_dir.glob("*.log") if p.is_file()) if logs_dir.is_dir() else []
        logger.info(f"Checking {len(log_files)} trace logs in {logs_dir}")

        loop = asyncio.get_running_loop()
        entries = []
        for log_file in log_files:
            entries.append(await loop.run_in_executor(None, self.check_file, log_file))

        report = LogCheckReport(logs_dir=str(logs_dir), entries=entries)
        if report.passed:
            logger.info(f"All {len(entries)} trace logs parsed")
            return report

        logger.error(f"{len(report.failures)} of {len(entries)} trace logs failed to parse")
        if self.archive_on_failure and logs_dir.is_dir():
            destination = Path(archive_dir or logs_dir.parent) / self.archive_name
            await loop.run_in_executor(None, archive_directory, logs_dir, destination)
            report.archive_path = str(destination)
        return report
