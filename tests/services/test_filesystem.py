import os

import pytest

from pgmigrator.errors import FilesystemError
from pgmigrator.services.filesystem import FileSystemService
from pgmigrator.services.log_sink import LogSink


class DummyLogger:
    def __init__(self):
        self.warnings = []

    def debug(self, *_args, **_kwargs):
        return None

    def warning(self, message, *args):
        self.warnings.append(message % args if args else message)


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


def test_remove_dir_and_file_record_removal_in_log(tmp_path):
    service = FileSystemService(logger=DummyLogger(), console=DummyConsole())
    dump_dir = tmp_path / "orders_dump_dir"
    dump_dir.mkdir()
    (dump_dir / "toc.dat").write_text("toc", encoding="utf-8")
    archive = tmp_path / "orders_dump.tar.gz"
    archive.write_bytes(b"archive")
    log_path = tmp_path / "orders.log"

    with LogSink(str(log_path)) as sink:
        service.remove_dir(str(dump_dir), sink)
        service.remove_file(str(archive), sink)
        service.remove_file(str(tmp_path / "absent"), sink)

    assert not dump_dir.exists()
    assert not archive.exists()
    assert log_path.read_text(encoding="utf-8").count("Removed: ") == 2


def test_remove_file_raises_filesystem_error(tmp_path, monkeypatch):
    service = FileSystemService(logger=DummyLogger(), console=DummyConsole())
    target = tmp_path / "orders_dump.tar.gz"
    target.write_bytes(b"archive")

    def fail_remove(_path):
        raise PermissionError("read-only")

    monkeypatch.setattr(os, "remove", fail_remove)

    with pytest.raises(FilesystemError, match="Could not remove"):
        service.remove_file(str(target))


def test_cleanup_file_logs_and_suppresses_errors(tmp_path, monkeypatch):
    logger = DummyLogger()
    service = FileSystemService(logger=logger, console=DummyConsole())
    target = tmp_path / "orders_dump.tar.gz"
    target.write_bytes(b"archive")
    log_path = tmp_path / "orders.log"

    def fail_remove(_path):
        raise PermissionError("read-only")

    monkeypatch.setattr(os, "remove", fail_remove)

    service.cleanup_file(str(target), LogSink(str(log_path)))

    assert target.exists()
    assert any("read-only" in warning for warning in logger.warnings)
    assert "Warning: Could not remove" in log_path.read_text(encoding="utf-8")
