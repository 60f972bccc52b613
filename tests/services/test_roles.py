from pathlib import Path

import pytest

from pgmigrator.errors import CommandFailure
from pgmigrator.models import ConnectionDescriptor, ExecutionResult, RunConfig
from pgmigrator.services.commands import PostgresCommandBuilder
from pgmigrator.services.filesystem import FileSystemService
from pgmigrator.services.log_sink import LogSink
from pgmigrator.services.roles import RoleStageService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def debug(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class RoleRunner:
    def __init__(self, fail_tool=None):
        self.fail_tool = fail_tool
        self.calls = []

    def execute(self, invocation, log_sink=None, check=True, capture=False):
        args = invocation.args
        self.calls.append(args)
        if args[0] == "pg_dumpall":
            Path(args[args.index("-f") + 1]).write_text("CREATE ROLE app;\n", encoding="utf-8")
        if args[0] == self.fail_tool:
            raise CommandFailure(2, invocation.command_text())
        return ExecutionResult(exit_code=0)


def _service(runner):
    logger = DummyLogger()
    console = DummyConsole()
    return RoleStageService(
        logger=logger,
        console=console,
        command_runner=runner,
        filesystem_service=FileSystemService(logger=logger, console=console),
    )


def _config(tmp_path) -> RunConfig:
    return RunConfig(
        source=ConnectionDescriptor("10.0.0.1", 5432, "reader", secret="src-secret"),
        target=ConnectionDescriptor("10.0.0.2", 5432, "writer", secret="tgt-secret"),
        databases=("orders",),
        jobs=1,
        work_dir=str(tmp_path),
    )


def test_copy_roles_dumps_restores_and_removes_temp_file(tmp_path):
    runner = RoleRunner()
    config = _config(tmp_path)
    log_path = tmp_path / "general.log"

    with LogSink(str(log_path)) as sink:
        _service(runner).copy_roles(config, PostgresCommandBuilder(config), log_sink=sink)

    assert [call[0] for call in runner.calls] == ["pg_dumpall", "psql"]
    assert not (tmp_path / "roles_dump_10.0.0.1.sql").exists()
    log_text = log_path.read_text(encoding="utf-8")
    assert "Roles restored on the target server." in log_text


def test_copy_roles_removes_temp_file_when_restore_fails(tmp_path):
    runner = RoleRunner(fail_tool="psql")
    config = _config(tmp_path)

    with pytest.raises(CommandFailure):
        _service(runner).copy_roles(config, PostgresCommandBuilder(config))

    assert not (tmp_path / "roles_dump_10.0.0.1.sql").exists()
