"""
CLI entrypoint for smt-trace-corpus.

Every operation is a subcommand. The global options (--env-file, --log-level)
are inherited by every subcommand through argparse's parent parser mechanism.

Usage:
    smt-trace-corpus cache-key --z3-version 4.12.2 --github-output
    smt-trace-corpus generate --z3-version 4.12.2 --z3 /opt/z3/bin/z3
    smt-trace-corpus check --logs-dir logs
    smt-trace-corpus matrix --z3-versions 4.8.7 4.12.2
    smt-trace-corpus parse logs/foo_fHash_<sha256>.log
"""

import argparse
import sys

from src.cli.commands import (
    handle_archive,
    handle_cache_key,
    handle_check,
    handle_generate,
    handle_matrix,
    handle_parse,
    handle_serve,
)
from src.cli.exit_codes import USER_ERROR


def _build_global_parser(default: object = None) -> argparse.ArgumentParser:
    """
    Parent parser with the options every subcommand accepts.

    The root parser holds the real defaults. Subparser copies use
    default=argparse.SUPPRESS and only set an option when it is given.
    """
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--env-file",
        type=str,
        default=default,
        dest="env_file",
        help="Read settings from this .env file instead of ./.env.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default=default,
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level (default: LOG_LEVEL setting).",
    )
    return parent


def _build_corpus_parser() -> argparse.ArgumentParser:
    """Parent parser with the corpus location options."""
    corpus = argparse.ArgumentParser(add_help=False)
    corpus.add_argument("--problems-dir", dest="problems_dir", default=None, help="Problem corpus root.")
    corpus.add_argument(
        "--problem-glob", dest="problem_glob", default=None, help="Glob selecting problem files."
    )
    corpus.add_argument("--logs-dir", dest="logs_dir", default=None, help="Trace logs directory.")
    return corpus


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive number, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the root parser with all subcommands registered."""
    parent = _build_global_parser(default=argparse.SUPPRESS)
    corpus = _build_corpus_parser()

    root_parser = argparse.ArgumentParser(
        prog="smt-trace-corpus",
        description="Generate, cache and check Z3 trace logs for a corpus of SMT-LIB problems.",
        parents=[_build_global_parser()],
    )
    subparsers = root_parser.add_subparsers(dest="command")

    cache_key = subparsers.add_parser(
        "cache-key", parents=[parent, corpus], help="Print the logs cache key of a release."
    )
    cache_key.add_argument("--z3-version", dest="solver_version", required=True, help="Z3 release.")
    cache_key.add_argument(
        "--github-output",
        action="store_true",
        default=False,
        dest="github_output",
        help="Also append z3_v_clean and cache_key to the file named by GITHUB_OUTPUT.",
    )
    cache_key.set_defaults(func=handle_cache_key)

    generate = subparsers.add_parser(
        "generate", parents=[parent, corpus], help="Produce missing trace logs."
    )
    generate.add_argument("--z3-version", dest="solver_version", default=None, help="Z3 release.")
    generate.add_argument("--z3", dest="z3_path", default=None, help="Z3 executable.")
    generate.add_argument(
        "--timeout", dest="solver_timeout", type=_positive_int, default=None, help="Solver timeout (s)."
    )
    generate.add_argument("--json", action="store_true", default=False, help="Print the run report.")
    generate.set_defaults(func=handle_generate)

    check = subparsers.add_parser("check", parents=[parent, corpus], help="Parse every trace log.")
    check.add_argument(
        "--parse-timeout", dest="parse_timeout", type=_positive_float, default=None, help="Per log (s)."
    )
    check.add_argument(
        "--no-archive", action="store_true", default=False, dest="no_archive", help="Never archive logs."
    )
    check.add_argument(
        "--archive-dir", dest="archive_dir", default=None, help="Where the failure archive goes."
    )
    check.add_argument("--json", action="store_true", default=False, help="Print the check report.")
    check.set_defaults(func=handle_check)

    matrix = subparsers.add_parser(
        "matrix", parents=[parent, corpus], help="Restore, generate, save and check per release."
    )
    matrix.add_argument(
        "--z3-versions", dest="z3_versions", nargs="+", default=None, help="Releases to run."
    )
    matrix.add_argument("--cache-dir", dest="cache_dir", default=None, help="Cache store directory.")
    matrix.add_argument(
        "--no-cache", action="store_true", default=False, dest="no_cache", help="Run without the cache."
    )
    matrix.add_argument("--report", default=None, help="Write the matrix report as JSON to this file.")
    matrix.set_defaults(func=handle_matrix)

    parse = subparsers.add_parser("parse", parents=[parent], help="Summarize trace logs.")
    parse.add_argument("log_files", nargs="+", help="Trace logs to parse.")
    parse.add_argument(
        "--parse-timeout", dest="parse_timeout", type=_positive_float, default=None, help="Per log (s)."
    )
    parse.add_argument("--top", type=_positive_int, default=10, help="Quantifiers listed per log.")
    parse.set_defaults(func=handle_parse)

    archive = subparsers.add_parser(
        "archive", parents=[parent, corpus], help="Archive the logs directory."
    )
    archive.add_argument("--output", default=None, help="Archive path (default: failing_logs.tar.gz).")
    archive.set_defaults(func=handle_archive)

    serve = subparsers.add_parser("serve", parents=[parent], help="Start the HTTP API.")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address.")
    serve.add_argument("--port", type=int, default=8000, help="Bind port.")
    serve.set_defaults(func=handle_serve)

    return root_parser


def main(argv: list[str] | None = None) -> None:
    """
    Main CLI entrypoint. This is what pyproject.toml's [project.scripts] points to.

    If no subcommand is given, we show help and exit with USER_ERROR.
    """
    root_parser = build_parser()
    args = root_parser.parse_args(argv)

    if getattr(args, "func", None) is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
