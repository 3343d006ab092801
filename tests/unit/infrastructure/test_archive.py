"""Unit tests for logs directory archives."""

import io
import tarfile
from pathlib import Path

import pytest

from src.infrastructure.archive import archive_directory, extract_archive


def _make_logs(root: Path) -> Path:
    logs = root / "logs"
    logs.mkdir()
    (logs / "a_fHash_1.log").write_text("[tool-version] Z3 4.12.2\n")
    (logs / "b_fHash_2.log").write_text("[mk-app] #1 a\n")
    return logs


class TestArchiveDirectory:
    """Tests for writing archives."""

    def test_archive_layout(self, tmp_path: Path) -> None:
        logs = _make_logs(tmp_path)
        archive = archive_directory(logs, tmp_path / "out" / "failing_logs.tar.gz")
        assert archive.exists()
        with tarfile.open(archive, "r:gz") as tar:
            names = sorted(tar.getnames())
        assert names == ["logs", "logs/a_fHash_1.log", "logs/b_fHash_2.log"]

    def test_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            archive_directory(tmp_path / "missing", tmp_path / "x.tar.gz")


class TestExtractArchive:
    """Tests for extracting archives."""

    def test_round_trip_strips_top_level(self, tmp_path: Path) -> None:
        logs = _make_logs(tmp_path)
        archive = archive_directory(logs, tmp_path / "logs.tar.gz")
        target = tmp_path / "restored"
        count = extract_archive(archive, target)
        assert count == 2
        assert (target / "a_fHash_1.log").read_text() == "[tool-version] Z3 4.12.2\n"

    def test_keep_top_level(self, tmp_path: Path) -> None:
        logs = _make_logs(tmp_path)
        archive = archive_directory(logs, tmp_path / "logs.tar.gz")
        target = tmp_path / "restored"
        extract_archive(archive, target, strip_top_level=False)
        assert (target / "logs" / "b_fHash_2.log").exists()

    def test_unsafe_members_skipped(self, tmp_path: Path) -> None:
        archive = tmp_path / "evil.tar.gz"
        with tarfile.open(archive, "w:gz") as tar:
            for name in ["logs/ok.log", "logs/../../escape.log"]:
                data = b"content"
                info = tarfile.TarInfo(name)
                info.size = len(data)
                tar.addfile(info, io.BytesIO(data))
            link = tarfile.TarInfo("logs/link.log")
            link.type = tarfile.SYMTYPE
            link.linkname = "/etc/passwd"
            tar.addfile(link)

        target = tmp_path / "restored"
        count = extract_archive(archive, target)
        assert count == 1
        assert (target / "ok.log").exists()
        assert not (tmp_path / "escape.log").exists()
        assert not (target / "link.log").exists()
