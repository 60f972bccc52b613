"""PostgreSQL and tar command templates for pgmigrator."""

import os

from pgmigrator.constants import ROLES_DUMP_TEMPLATE
from pgmigrator.models import CommandInvocation, RunConfig, StageArtifacts


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def conninfo_dbname(name: str) -> str:
    """Wrap a database name so libpq never expands it as a connection string."""
    escaped = name.replace("\\", "\\\\").replace("'", "\\'")
    return f"dbname='{escaped}'"


class PostgresCommandBuilder:
    """Builds structured argv lists; secrets only travel in the env overlay."""

    def __init__(self, config: RunConfig):
        self.config = config

    def _source(self, *args: str, description: str) -> CommandInvocation:
        return CommandInvocation(
            args=tuple(args),
            env=self.config.source.env_overlay(),
            description=description,
        )

    def _target(self, *args: str, description: str) -> CommandInvocation:
        return CommandInvocation(
            args=tuple(args),
            env=self.config.target.env_overlay(),
            description=description,
        )

    def roles_dump_path(self) -> str:
        return os.path.join(
            self.config.work_dir,
            ROLES_DUMP_TEMPLATE.format(host=self.config.source.host),
        )

    def dump_roles(self, roles_file: str) -> CommandInvocation:
        # --no-role-passwords: passwords must be reset on the target
        return self._source(
            "pg_dumpall",
            *self.config.source.connection_args(),
            "--roles-only",
            "--no-comments",
            "--no-role-passwords",
            "-f",
            roles_file,
            description="dump roles",
        )

    def restore_roles(self, roles_file: str) -> CommandInvocation:
        return self._target(
            "psql",
            *self.config.target.connection_args(),
            "-f",
            roles_file,
            "-d",
            conninfo_dbname(self.config.admin_database),
            description="restore roles",
        )

    def drop_database(self, database: str) -> CommandInvocation:
        return self._target(
            "psql",
            *self.config.target.connection_args(),
            "-c",
            f"DROP DATABASE IF EXISTS {quote_identifier(database)};",
            "-d",
            conninfo_dbname(self.config.admin_database),
            description="drop database",
        )

    def create_database(self, database: str) -> CommandInvocation:
        return self._target(
            "psql",
            *self.config.target.connection_args(),
            "-c",
            f"CREATE DATABASE {quote_identifier(database)};",
            "-d",
            conninfo_dbname(self.config.admin_database),
            description="create database",
        )

    def dump_database(self, artifacts: StageArtifacts) -> CommandInvocation:
        return self._source(
            "pg_dump",
            *self.config.source.connection_args(),
            "-Fd",
            "-j",
            str(self.config.jobs),
            "-f",
            artifacts.dump_dir,
            "-d",
            conninfo_dbname(artifacts.database),
            description="dump database",
        )

    def archive_dump(self, artifacts: StageArtifacts) -> CommandInvocation:
        return CommandInvocation(
            args=("tar", "-czf", artifacts.archive_name, artifacts.dump_dir_name),
            cwd=artifacts.work_dir,
            description="archive dump",
        )

    def unpack_dump(self, artifacts: StageArtifacts) -> CommandInvocation:
        return CommandInvocation(
            args=("tar", "-xzf", artifacts.archive_name),
            cwd=artifacts.work_dir,
            description="unpack dump",
        )

    def restore_database(self, artifacts: StageArtifacts) -> CommandInvocation:
        return self._target(
            "pg_restore",
            *self.config.target.connection_args(),
            "-j",
            str(self.config.jobs),
            "-d",
            conninfo_dbname(artifacts.database),
            artifacts.dump_dir,
            description="restore database",
        )

    def tool_version(self, tool: str) -> CommandInvocation:
        return CommandInvocation(args=(tool, "--version"), description=f"{tool} version")
