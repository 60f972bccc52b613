import pytest

from pgmigrator.errors import FilesystemError
from pgmigrator.services.log_sink import LogSink


def test_log_sink_appends_without_truncating(tmp_path):
    log_path = tmp_path / "orders_migration_log.log"
    log_path.write_text("previous run\n", encoding="utf-8")

    with LogSink(str(log_path)) as sink:
        sink.write("Starting migration for database: orders")

    sink.write("written after the scope closed")

    assert log_path.read_text(encoding="utf-8").splitlines() == [
        "previous run",
        "Starting migration for database: orders",
        "written after the scope closed",
    ]


def test_log_sink_raises_filesystem_error_for_unwritable_path(tmp_path):
    sink = LogSink(str(tmp_path / "missing" / "general.log"))

    with pytest.raises(FilesystemError, match="Could not write log file"):
        sink.write("line")

    with pytest.raises(FilesystemError, match="Could not open log file"):
        with sink:
            pass
