"""Unit tests for the smt-trace-corpus command line.

The Z3 tracer is mocked; commands run against temporary corpora.
"""

import json
import logging
import tarfile
from pathlib import Path

import pytest

from src.cli.exit_codes import CONFIG_ERROR, SUCCESS, USER_ERROR, VALIDATION_ERROR
from src.cli.main import build_parser, main
from src.domain.naming import file_sha256


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo the root logger configuration done by each command."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("GITHUB_OUTPUT", "LOGS_DIR", "PROBLEMS_DIR", "CACHE_DIR", "Z3_PATH"):
        monkeypatch.delenv(name, raising=False)


def run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestParser:
    """Tests for argument parsing."""

    def test_no_subcommand_shows_help(self, capsys) -> None:
        assert run([]) == USER_ERROR
        assert "usage: smt-trace-corpus" in capsys.readouterr().out

    def test_global_options_on_subcommand(self) -> None:
        args = build_parser().parse_args(["check", "--log-level", "DEBUG", "--logs-dir", "out"])
        assert args.log_level == "DEBUG"
        assert args.logs_dir == "out"

    def test_global_options_before_subcommand(self) -> None:
        args = build_parser().parse_args(["--log-level", "DEBUG", "--env-file", "ci.env", "check"])
        assert args.log_level == "DEBUG"
        assert args.env_file == "ci.env"

    def test_global_options_default_to_none(self) -> None:
        args = build_parser().parse_args(["check"])
        assert args.log_level is None
        assert args.env_file is None

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["generate", "--timeout", "0"])


class TestConfiguration:
    """Tests for configuration errors."""

    def test_missing_env_file(self, tmp_path: Path) -> None:
        assert run(["check", "--env-file", str(tmp_path / "missing.env")]) == CONFIG_ERROR

    def test_invalid_setting(self, monkeypatch, tmp_path: Path) -> None:
        monkeypatch.setenv("SOLVER_TIMEOUT", "0")
        assert run(["check", "--logs-dir", str(tmp_path)]) == CONFIG_ERROR

    def test_override_out_of_range(self, tmp_path: Path, mock_tracer, mocker) -> None:
        tracer_cls = mocker.patch("src.cli.commands.Z3Tracer", return_value=mock_tracer)

        code = run(["generate", "--timeout", "999999", "--logs-dir", str(tmp_path / "logs")])

        assert code == CONFIG_ERROR
        tracer_cls.assert_not_called()

    def test_log_level_before_subcommand(self, tmp_path: Path) -> None:
        run(["--log-level", "DEBUG", "check", "--logs-dir", str(tmp_path)])
        assert logging.getLogger().level == logging.DEBUG

    def test_env_file(self, tmp_path: Path, problems_dir: Path, capsys) -> None:
        env_file = tmp_path / "ci.env"
        env_file.write_text(f"PROBLEMS_DIR={problems_dir}\n")
        assert run(["cache-key", "--z3-version", "4.12.2", "--env-file", str(env_file)]) == SUCCESS
        key = capsys.readouterr().out.strip()
        assert key != "logs-4_12_2-"


class TestCacheKey:
    """Tests for the cache-key command."""

    def test_prints_key(self, problems_dir: Path, capsys) -> None:
        code = run(["cache-key", "--z3-version", "4.12.2", "--problems-dir", str(problems_dir)])

        assert code == SUCCESS
        key = capsys.readouterr().out.strip()
        assert key.startswith("logs-4_12_2-")
        assert len(key) == len("logs-4_12_2-") + 64

    def test_github_output(self, problems_dir: Path, tmp_path: Path, monkeypatch, capsys) -> None:
        output = tmp_path / "github_output"
        output.write_text("existing=1\n")
        monkeypatch.setenv("GITHUB_OUTPUT", str(output))

        code = run(
            ["cache-key", "--z3-version", "4.8.7", "--problems-dir", str(problems_dir), "--github-output"]
        )

        assert code == SUCCESS
        key = capsys.readouterr().out.strip()
        assert output.read_text().splitlines() == ["existing=1", "z3_v_clean=4_8_7", f"cache_key={key}"]

    def test_github_output_without_variable(self, problems_dir: Path) -> None:
        code = run(
            ["cache-key", "--z3-version", "4.8.7", "--problems-dir", str(problems_dir), "--github-output"]
        )
        assert code == CONFIG_ERROR


class TestGenerateAndCheck:
    """Tests for the generate, check and archive commands."""

    def test_generate(self, problems_dir: Path, tmp_path: Path, mock_tracer, mocker) -> None:
        tracer_cls = mocker.patch("src.cli.commands.Z3Tracer", return_value=mock_tracer)
        logs_dir = tmp_path / "logs"

        code = run(
            [
                "generate",
                "--z3-version", "4.12.2",
                "--z3", "/opt/z3/bin/z3",
                "--timeout", "60",
                "--problems-dir", str(problems_dir),
                "--logs-dir", str(logs_dir),
            ]
        )

        assert code == SUCCESS
        assert tracer_cls.call_args.args == ("/opt/z3/bin/z3",)
        alpha = problems_dir / "alpha.smt2"
        assert (logs_dir / f"alpha_fHash_{file_sha256(alpha)}.log").exists()
        assert mock_tracer.trace.await_args_list[0].kwargs == {"timeout": 60}

    def test_generate_json_report(self, problems_dir: Path, tmp_path: Path, tracer_factory, mocker, capsys) -> None:
        mocker.patch("src.cli.commands.Z3Tracer", return_value=tracer_factory(fail_on=("alpha.smt2",)))

        code = run(
            ["generate", "--problems-dir", str(problems_dir), "--logs-dir", str(tmp_path / "logs"), "--json"]
        )

        # Per-problem failures are reported, not fatal
        assert code == SUCCESS
        report = json.loads(capsys.readouterr().out)
        assert [o["status"] for o in report["outcomes"]] == ["failed", "generated"]

    def test_check_passes(self, tmp_path: Path, sample_trace: str) -> None:
        logs_dir = tmp_path / "logs"
        logs_dir.mkdir()
        (logs_dir / "a.log").write_text(sample_trace)

        assert run(["check", "--logs-dir", str(logs_dir)]) == SUCCESS

    def test_check_fails_and_archives(self, tmp_path: Path, malformed_trace: str) -> None:
        logs_dir = tmp_path / "logs"
        logs_dir.mkdir()
        (logs_dir / "bad.log").write_text(malformed_trace)
        artifacts = tmp_path / "artifacts"

        code = run(["check", "--logs-dir", str(logs_dir), "--archive-dir", str(artifacts)])

        assert code == VALIDATION_ERROR
        assert (artifacts / "failing_logs.tar.gz").exists()

    def test_check_no_archive(self, tmp_path: Path, malformed_trace: str) -> None:
        logs_dir = tmp_path / "logs"
        logs_dir.mkdir()
        (logs_dir / "bad.log").write_text(malformed_trace)

        code = run(["check", "--logs-dir", str(logs_dir), "--no-archive"])

        assert code == VALIDATION_ERROR
        assert not (tmp_path / "failing_logs.tar.gz").exists()

    def test_archive(self, tmp_path: Path) -> None:
        logs_dir = tmp_path / "logs"
        logs_dir.mkdir()
        (logs_dir / "a.log").write_text("x")
        output = tmp_path / "out.tar.gz"

        assert run(["archive", "--logs-dir", str(logs_dir), "--output", str(output)]) == SUCCESS
        with tarfile.open(output, "r:gz") as tar:
            assert "logs/a.log" in tar.getnames()

    def test_archive_missing_logs(self, tmp_path: Path) -> None:
        code = run(["archive", "--logs-dir", str(tmp_path / "missing"), "--output", str(tmp_path / "o.tar.gz")])
        assert code == USER_ERROR


class TestMatrix:
    """Tests for the matrix command."""

    def test_matrix_with_report(self, problems_dir: Path, tmp_path: Path, mock_tracer, mocker) -> None:
        mocker.patch("src.cli.commands.Z3Tracer", return_value=mock_tracer)
        report_file = tmp_path / "matrix.json"

        code = run(
            [
                "matrix",
                "--z3-versions", "4.12.2",
                "--problems-dir", str(problems_dir),
                "--logs-dir", str(tmp_path / "logs"),
                "--cache-dir", str(tmp_path / "cache"),
                "--report", str(report_file),
            ]
        )

        assert code == SUCCESS
        report = json.loads(report_file.read_text())
        (result,) = report["results"]
        assert result["version"]["raw"] == "4.12.2"
        assert result["cache_saved"] is True
        assert list((tmp_path / "cache").glob("logs-4_12_2-*.tar.gz"))

    def test_matrix_failure(self, problems_dir: Path, tmp_path: Path, tracer_factory, malformed_trace, mocker) -> None:
        mocker.patch("src.cli.commands.Z3Tracer", return_value=tracer_factory(log_content=malformed_trace))

        code = run(
            [
                "matrix",
                "--z3-versions", "4.12.2",
                "--problems-dir", str(problems_dir),
                "--logs-dir", str(tmp_path / "logs"),
                "--no-cache",
            ]
        )

        assert code == VALIDATION_ERROR
        assert not (tmp_path / "cache").exists()


class TestParse:
    """Tests for the parse command."""

    def test_parse_prints_summaries(self, tmp_path: Path, sample_trace: str, capsys) -> None:
        log = tmp_path / "a.log"
        log.write_text(sample_trace)

        assert run(["parse", str(log), "--top", "1"]) == SUCCESS

        (summary,) = json.loads(capsys.readouterr().out)
        assert summary["log_file"] == str(log)
        assert summary["instantiation_count"] == 2
        assert len(summary["top_quantifiers"]) == 1

    def test_parse_reports_every_log(self, tmp_path: Path, sample_trace: str, malformed_trace: str, capsys) -> None:
        bad = tmp_path / "bad.log"
        good = tmp_path / "good.log"
        bad.write_text(malformed_trace)
        good.write_text(sample_trace)

        assert run(["parse", str(bad), str(good)]) == VALIDATION_ERROR

        summaries = json.loads(capsys.readouterr().out)
        assert [s["log_file"] for s in summaries] == [str(good)]

    def test_parse_missing_file(self, tmp_path: Path) -> None:
        assert run(["parse", str(tmp_path / "missing.log")]) == USER_ERROR


class TestServe:
    """Tests for the serve command."""

    def test_serve_starts_uvicorn(self, mocker) -> None:
        uvicorn_run = mocker.patch("uvicorn.run")

        assert run(["serve", "--host", "0.0.0.0", "--port", "9000"]) == SUCCESS

        uvicorn_run.assert_called_once()
        assert uvicorn_run.call_args.args == ("src.main:app",)
        assert uvicorn_run.call_args.kwargs["port"] == 9000
