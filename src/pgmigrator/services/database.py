"""Per-database migration stage for pgmigrator."""

from contextlib import contextmanager
from typing import Callable, Iterator, List, Tuple

from rich.markup import escape

from pgmigrator.errors import FilesystemError, MigratorError
from pgmigrator.errors_catalog import actionable_error
from pgmigrator.models import DatabaseOutcome, DatabaseState, RunConfig, StageArtifacts
from pgmigrator.services.commands import PostgresCommandBuilder
from pgmigrator.services.log_sink import LogSink

StageStep = Callable[[StageArtifacts, RunConfig, PostgresCommandBuilder, LogSink], None]


class DatabaseMigrationService:
    """Runs create, dump, archive, unpack and restore for one database.

    A failing sub-step skips the remaining ones for that database only. The
    archive and dump directory are always removed afterwards.
    """

    def __init__(self, logger, console, command_runner, filesystem_service, archive_service):
        self.logger = logger
        self.console = console
        self.command_runner = command_runner
        self.filesystem_service = filesystem_service
        self.archive_service = archive_service

    def stages(self) -> List[Tuple[DatabaseState, StageStep]]:
        return [
            (DatabaseState.CREATING, self.create_database),
            (DatabaseState.DUMPING, self.dump_database),
            (DatabaseState.ARCHIVING, self.archive_dump),
            (DatabaseState.UNPACKING, self.unpack_dump),
            (DatabaseState.RESTORING, self.restore_database),
        ]

    def migrate(
        self,
        database: str,
        config: RunConfig,
        commands: PostgresCommandBuilder,
        timestamp: str,
    ) -> DatabaseOutcome:
        artifacts = StageArtifacts.for_database(config.work_dir, database, timestamp)
        outcome = DatabaseOutcome(database=database, log_file=artifacts.log_file)

        self.console.print(f"[bold blue]## Migrating database: {escape(database)}[/bold blue]")
        self.logger.info("Migrating database '%s'. Log: %s", database, artifacts.log_file)

        with LogSink(artifacts.log_file) as log_sink:
            with self.staged_artifacts(artifacts, outcome, log_sink):
                log_sink.write(f"Starting migration for database: {database}")
                try:
                    for state, step in self.stages():
                        outcome.advance(state)
                        step(artifacts, config, commands, log_sink)
                    outcome.advance(DatabaseState.DONE)
                    self._note(f"Database '{database}' migrated successfully!", log_sink, "green")
                except MigratorError as exc:
                    outcome.mark_failed(str(exc))
                    self._record_failure(outcome, exc, log_sink)

        return outcome

    @contextmanager
    def staged_artifacts(
        self,
        artifacts: StageArtifacts,
        outcome: DatabaseOutcome,
        log_sink: LogSink,
    ) -> Iterator[StageArtifacts]:
        try:
            yield artifacts
        finally:
            self.cleanup(artifacts, log_sink)
            outcome.advance(DatabaseState.CLEANED_UP)

    def create_database(
        self,
        artifacts: StageArtifacts,
        config: RunConfig,
        commands: PostgresCommandBuilder,
        log_sink: LogSink,
    ):
        database = artifacts.database
        self._note(f"Checking/Creating database '{database}' on the target...", log_sink)
        if config.drop_existing:
            # destroys any existing target database of that name
            self.command_runner.execute(commands.drop_database(database), log_sink=log_sink)
        self.command_runner.execute(commands.create_database(database), log_sink=log_sink)
        self._note(f"Database '{database}' ready on the target.", log_sink)

    def dump_database(
        self,
        artifacts: StageArtifacts,
        config: RunConfig,
        commands: PostgresCommandBuilder,
        log_sink: LogSink,
    ):
        self._note(
            f"Generating dump of '{artifacts.database}' on {config.source.host} "
            f"with {config.jobs} parallel jobs...",
            log_sink,
        )
        self.filesystem_service.remove_dir(artifacts.dump_dir, log_sink)
        self.command_runner.execute(commands.dump_database(artifacts), log_sink=log_sink)
        self._note(
            f"Dump of '{artifacts.database}' saved to directory {artifacts.dump_dir}", log_sink
        )

    def archive_dump(
        self,
        artifacts: StageArtifacts,
        config: RunConfig,
        commands: PostgresCommandBuilder,
        log_sink: LogSink,
    ):
        self._note(
            f"Compressing dump directory {artifacts.dump_dir} to {artifacts.archive_file}...",
            log_sink,
        )
        self.filesystem_service.remove_file(artifacts.archive_file, log_sink)
        self.command_runner.execute(commands.archive_dump(artifacts), log_sink=log_sink)
        self._note("Dump directory compressed.", log_sink)

    def unpack_dump(
        self,
        artifacts: StageArtifacts,
        config: RunConfig,
        commands: PostgresCommandBuilder,
        log_sink: LogSink,
    ):
        self._note(f"Decompressing {artifacts.archive_file}...", log_sink)
        self.filesystem_service.remove_dir(artifacts.dump_dir, log_sink)
        self.archive_service.verify_tar_members(artifacts.archive_file, artifacts.dump_dir_name)
        self.command_runner.execute(commands.unpack_dump(artifacts), log_sink=log_sink)
        self._note(f"Dump file decompressed to {artifacts.dump_dir}.", log_sink)

    def restore_database(
        self,
        artifacts: StageArtifacts,
        config: RunConfig,
        commands: PostgresCommandBuilder,
        log_sink: LogSink,
    ):
        self._note(
            f"Restoring dump of '{artifacts.database}' on {config.target.host} "
            f"with {config.jobs} parallel jobs. See progress in log: {artifacts.log_file}",
            log_sink,
        )
        self.command_runner.execute(commands.restore_database(artifacts), log_sink=log_sink)

    def cleanup(self, artifacts: StageArtifacts, log_sink: LogSink):
        self.logger.info("Cleaning up temporary files for '%s'...", artifacts.database)
        self.filesystem_service.cleanup_file(artifacts.archive_file, log_sink)
        self.filesystem_service.cleanup_dir(artifacts.dump_dir, log_sink)
        try:
            log_sink.write(f"Temporary files for '{artifacts.database}' removed.")
        except FilesystemError as exc:
            self.logger.warning("Could not write to %s: %s", log_sink.path, exc)

    def _record_failure(self, outcome: DatabaseOutcome, exc: MigratorError, log_sink: LogSink):
        stage = outcome.failed_stage.value if outcome.failed_stage else "unknown"
        message = f"ERROR migrating database '{outcome.database}' during {stage}: {exc}"
        self.console.print(f"[bold red]{escape(message)}[/bold red]")
        self.logger.error(
            actionable_error(
                "database_migration_failed",
                database=outcome.database,
                stage=stage,
                log_file=outcome.log_file,
            )
        )
        try:
            log_sink.write(message)
        except FilesystemError as log_exc:
            self.logger.warning("Could not write to %s: %s", log_sink.path, log_exc)

    def _note(self, message: str, log_sink: LogSink, color: str = "blue"):
        self.console.print(f"[{color}]{escape(message)}[/{color}]")
        self.logger.info(message)
        log_sink.write(message)
