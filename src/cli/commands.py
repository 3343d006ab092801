"""
Subcommand handlers for the smt-trace-corpus CLI.

Each function here corresponds to one CLI subcommand and returns an exit code.
Diagnostics go through the logger (on stderr); only the data a command exists
to produce (a cache key, a JSON report) is written to stdout.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from src.application.log_check_service import LogCheckService
from src.application.log_generation_service import LogGenerationService
from src.application.matrix_service import MatrixService, compute_cache_key
from src.cli.exit_codes import CONFIG_ERROR, RUNTIME_ERROR, SUCCESS, USER_ERROR, VALIDATION_ERROR
from src.domain.exceptions import CorpusError, TraceParseError
from src.domain.trace.graph import summarize
from src.domain.trace.parser import Z3TraceParser
from src.infrastructure.archive import archive_directory
from src.infrastructure.cache.log_cache import LogCacheStore
from src.infrastructure.smt.z3_tracer import Z3Tracer
from src.shared.config import Settings
from src.shared.logging_config import configure_logging, get_logger
from src.shared.result import Err, Ok, Result, partition

# Command-line option name => settings field it overrides
_SETTINGS_OVERRIDES = {
    "problems_dir": "problems_dir",
    "problem_glob": "problem_glob",
    "logs_dir": "logs_dir",
    "cache_dir": "cache_dir",
    "z3_path": "z3_path",
    "solver_timeout": "solver_timeout",
    "parse_timeout": "parse_timeout",
}


def _load_settings(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, Settings | None, logging.Logger]:
    """
    The shared setup every command needs: configure logging, load settings.

    Returns a tuple of (exit_code, settings, logger). If exit_code is not
    SUCCESS, the caller should return it immediately.
    """
    configure_logging(args.log_level or "INFO", stream=sys.stderr)
    logger = get_logger(f"src.cli.{command_name}")

    try:
        if args.env_file is not None:
            if not Path(args.env_file).is_file():
                logger.error(f"Environment file not found: {args.env_file}")
                return CONFIG_ERROR, None, logger
            settings = Settings(_env_file=args.env_file)
        else:
            settings = Settings()
    except ValidationError as err:
        logger.error(f"Configuration error: {err}")
        return CONFIG_ERROR, None, logger

    overrides = {
        field: getattr(args, option)
        for option, field in _SETTINGS_OVERRIDES.items()
        if getattr(args, option, None) is not None
    }
    if overrides:
        try:
            settings = Settings.model_validate({**settings.model_dump(), **overrides})
        except ValidationError as err:
            logger.error(f"Invalid command-line option: {err}")
            return CONFIG_ERROR, None, logger

    if args.log_level is None:
        configure_logging(settings.log_level, stream=sys.stderr)

    return SUCCESS, settings, logger


def _tracer_for(settings: Settings, version: str | None) -> Z3Tracer:
    return Z3Tracer(settings.z3_path_for(version), grace_period=settings.solver_grace_period)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


def write_step_outputs(output_file: str | Path, outputs: dict[str, str]) -> None:
    """Append name=value lines to a CI step output file (GITHUB_OUTPUT)."""
    with open(output_file, "a", encoding="utf-8") as f:
        for name, value in outputs.items():
            f.write(f"{name}={value}\n")


def handle_cache_key(args: argparse.Namespace) -> int:
    """Print the cache key of a release for the current corpus."""
    exit_code, settings, logger = _load_settings(args, "cache-key")
    if exit_code != SUCCESS:
        return exit_code

    try:
        key = compute_cache_key(args.solver_version, settings.problems_dir, settings.problem_glob)
    except OSError as err:
        logger.error(f"Failed to hash problem files: {err}")
        return RUNTIME_ERROR

    if not key.corpus_hash:
        logger.warning(f"No problem files match {settings.problem_glob} under {settings.problems_dir}")
    print(key.key)

    if args.github_output:
        if not settings.github_output:
            logger.error("GITHUB_OUTPUT is not set, cannot export the cache key")
            return CONFIG_ERROR
        write_step_outputs(
            settings.github_output,
            {"z3_v_clean": key.version.sanitized, "cache_key": key.key},
        )
        logger.info(f"Exported cache key to {settings.github_output}")

    return SUCCESS


def handle_generate(args: argparse.Namespace) -> int:
    """Produce the trace logs missing from the logs directory."""
    exit_code, settings, logger = _load_settings(args, "generate")
    if exit_code != SUCCESS:
        return exit_code

    tracer = _tracer_for(settings, args.solver_version)
    service = LogGenerationService(tracer, solver_timeout=settings.solver_timeout)

    async def _run():
        installed = await tracer.version()
        if args.solver_version and installed and installed != args.solver_version:
            logger.warning(f"Requested Z3 {args.solver_version} but {tracer.z3_path} reports {installed}")
        return await service.generate(
            settings.problems_dir,
            settings.logs_dir,
            pattern=settings.problem_glob,
            solver_version=installed or args.solver_version,
        )

    try:
        report = asyncio.run(_run())
    except (CorpusError, OSError) as err:
        logger.error(f"Log generation failed: {err}", exc_info=True)
        return RUNTIME_ERROR

    if args.json:
        print(report.model_dump_json(indent=2))
    return SUCCESS


def handle_check(args: argparse.Namespace) -> int:
    """Parse every trace log; archive the logs if any fails."""
    exit_code, settings, logger = _load_settings(args, "check")
    if exit_code != SUCCESS:
        return exit_code

    service = LogCheckService(
        parse_timeout=settings.parse_timeout,
        archive_on_failure=settings.archive_on_failure and not args.no_archive,
        archive_name=settings.failure_archive_name,
    )
    try:
        report = asyncio.run(service.check(settings.logs_dir, archive_dir=args.archive_dir))
    except OSError as err:
        logger.error(f"Log check failed: {err}", exc_info=True)
        return RUNTIME_ERROR

    if args.json:
        print(report.model_dump_json(indent=2))

    if not report.passed:
        for entry in report.failures:
            logger.error(f"{entry.log_file}: {entry.error}")
        if report.archive_path:
            logger.info(f"Failing logs archived to {report.archive_path}")
        return VALIDATION_ERROR
    return SUCCESS


def handle_matrix(args: argparse.Namespace) -> int:
    """Run restore, generate, save and check for every release."""
    exit_code, settings, logger = _load_settings(args, "matrix")
    if exit_code != SUCCESS:
        return exit_code

    cache = None
    if settings.cache_enabled and not args.no_cache:
        cache = LogCacheStore(settings.cache_dir, max_size_mb=settings.cache_max_size_mb)

    service = MatrixService(
        tracer_factory=lambda version: _tracer_for(settings, version),
        cache=cache,
        settings=settings,
    )
    try:
        report = asyncio.run(service.run(args.z3_versions))
    except OSError as err:
        logger.error(f"Matrix run failed: {err}", exc_info=True)
        return RUNTIME_ERROR

    if args.report:
        Path(args.report).write_text(report.model_dump_json(indent=2), encoding="utf-8")
        logger.info(f"Matrix report written to {args.report}")

    return SUCCESS if report.passed else VALIDATION_ERROR


def _summarize_log(log_file: str, parse_timeout: float, top_n: int) -> Result[dict, Exception]:
    try:
        timed_out, parser = Z3TraceParser.parse_file(log_file, timeout=parse_timeout)
    except (OSError, TraceParseError) as err:
        return Err(err)
    summary = summarize(parser, timed_out=timed_out, top_n=top_n)
    return Ok({"log_file": log_file, **summary.model_dump(mode="json")})


def handle_parse(args: argparse.Namespace) -> int:
    """Parse trace logs and print their summaries.

    Every log is parsed even when an earlier one fails; the summaries of the
    logs that parsed are printed either way.
    """
    exit_code, settings, logger = _load_settings(args, "parse")
    if exit_code != SUCCESS:
        return exit_code

    summaries, errors = partition(
        _summarize_log(log_file, settings.parse_timeout, args.top) for log_file in args.log_files
    )
    _print_json(summaries)

    for err in errors:
        logger.error(f"Failed to parse: {err}")
    if any(isinstance(err, OSError) for err in errors):
        return USER_ERROR
    if errors:
        return VALIDATION_ERROR
    return SUCCESS


def handle_archive(args: argparse.Namespace) -> int:
    """Archive the logs directory as a gzip tarball."""
    exit_code, settings, logger = _load_settings(args, "archive")
    if exit_code != SUCCESS:
        return exit_code

    destination = args.output or settings.failure_archive_name
    try:
        archive_directory(settings.logs_dir, destination)
    except FileNotFoundError as err:
        logger.error(str(err))
        return USER_ERROR
    except OSError as err:
        logger.error(f"Failed to write {destination}: {err}")
        return RUNTIME_ERROR
    return SUCCESS


def handle_serve(args: argparse.Namespace) -> int:
    """Start the HTTP API server."""
    exit_code, settings, logger = _load_settings(args, "serve")
    if exit_code != SUCCESS:
        return exit_code

    import uvicorn

    logger.info(f"Starting API server on {args.host}:{args.port}")
    uvicorn.run("src.main:app", host=args.host, port=args.port, log_level=settings.log_level.lower())
    return SUCCESS
