import logging
import os
from datetime import datetime
from typing import List, Optional, Tuple

from rich.console import Console
from rich.markup import escape

from .constants import (
    EXIT_DATABASE_FAILURES,
    EXIT_FATAL,
    EXIT_INTERRUPTED,
    EXIT_OK,
    GENERAL_LOG_TEMPLATE,
    ON_FAILURE_ABORT,
    TIMESTAMP_FORMAT,
)
from .errors import MigratorError
from .errors_catalog import actionable_error
from .models import DatabaseOutcome, RunConfig, StageArtifacts
from .services.archive import ArchiveService
from .services.command_runner import CommandRunner
from .services.commands import PostgresCommandBuilder
from .services.database import DatabaseMigrationService
from .services.filesystem import FileSystemService
from .services.log_sink import LogSink
from .services.preflight import PreflightService
from .services.roles import RoleStageService

console = Console()
logger = logging.getLogger("pgmigrator")


class PgMigrator:
    """Drives the role stage and the per-database stages for one run."""

    def __init__(self, config: RunConfig, dry_run: bool = False, skip_preflight: bool = False):
        self.config = config
        self.dry_run = dry_run
        self.skip_preflight = skip_preflight
        self.outcomes: List[DatabaseOutcome] = []
        self.general_log_file: Optional[str] = None

        self.commands = PostgresCommandBuilder(config)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.archive_service = ArchiveService()
        self.command_runner = CommandRunner(logger=logger, console=console)
        self.preflight_service = PreflightService(
            logger=logger,
            console=console,
            command_runner=self.command_runner,
        )
        self.role_service = RoleStageService(
            logger=logger,
            console=console,
            command_runner=self.command_runner,
            filesystem_service=self.filesystem_service,
        )
        self.database_service = DatabaseMigrationService(
            logger=logger,
            console=console,
            command_runner=self.command_runner,
            filesystem_service=self.filesystem_service,
            archive_service=self.archive_service,
        )

    @staticmethod
    def _timestamp() -> str:
        return datetime.now().strftime(TIMESTAMP_FORMAT)

    def print_header(self):
        console.print("[bold]--- PostgreSQL Migration Start ---[/bold]")
        console.print(f"Source Host: {escape(self.config.source.label)}")
        console.print(f"Target Host: {escape(self.config.target.label)}")
        console.print(f"Databases to Migrate: {escape(', '.join(self.config.databases))}")
        console.print(f"Using {self.config.jobs} parallel jobs for dump/restore.")

    def describe_plan(self) -> List[Tuple[str, str]]:
        """Returns (unit, redacted command) pairs in execution order."""
        plan: List[Tuple[str, str]] = []
        if self.config.import_roles:
            roles_file = self.commands.roles_dump_path()
            plan.append(("roles", self.commands.dump_roles(roles_file).command_text()))
            plan.append(("roles", self.commands.restore_roles(roles_file).command_text()))

        for database in self.config.databases:
            artifacts = StageArtifacts.for_database(self.config.work_dir, database, "<timestamp>")
            invocations = []
            if self.config.drop_existing:
                invocations.append(self.commands.drop_database(database))
            invocations.extend(
                [
                    self.commands.create_database(database),
                    self.commands.dump_database(artifacts),
                    self.commands.archive_dump(artifacts),
                    self.commands.unpack_dump(artifacts),
                    self.commands.restore_database(artifacts),
                ]
            )
            plan.extend((database, invocation.command_text()) for invocation in invocations)
        return plan

    def print_plan(self):
        console.print("[bold yellow]Dry run: no command will be executed.[/bold yellow]")
        for unit, command in self.describe_plan():
            console.print(f"[cyan]{escape(unit)}[/cyan] {escape(command)}")

    def validate_tools(self, general_sink: LogSink):
        if self.skip_preflight:
            logger.info("Skipping client tool preflight checks.")
            return
        self.preflight_service.validate_environment(self.config, self.commands, log_sink=general_sink)

    def copy_roles(self, general_sink: LogSink):
        if not self.config.import_roles:
            message = "Skipping role import as per configuration."
            console.print(f"[yellow]## {message}[/yellow]")
            logger.info(message)
            general_sink.write(message)
            return

        try:
            self.role_service.copy_roles(self.config, self.commands, log_sink=general_sink)
        except MigratorError as exc:
            general_sink.write(f"ERROR copying/restoring roles: {exc}")
            console.print(f"[bold red]ERROR copying/restoring roles:[/bold red] {escape(str(exc))}")
            raise MigratorError(
                actionable_error("role_stage_failed", log_file=general_sink.path)
            ) from exc

    def migrate_databases(self, general_sink: LogSink) -> List[DatabaseOutcome]:
        console.print("\n[bold]--- Database Migration ---[/bold]")
        databases = self.config.databases

        for index, database in enumerate(databases):
            try:
                outcome = self.database_service.migrate(
                    database, self.config, self.commands, self._timestamp()
                )
            except MigratorError as exc:
                logger.error("Could not migrate database '%s': %s", database, exc)
                outcome = DatabaseOutcome(database=database, log_file="")
                outcome.mark_failed(str(exc))

            self.outcomes.append(outcome)
            status = "migrated" if outcome.succeeded else f"failed ({outcome.error})"
            general_sink.write(f"Database '{database}' {status}.")

            if not outcome.succeeded and self.config.on_database_failure == ON_FAILURE_ABORT:
                remaining = databases[index + 1 :]
                if remaining:
                    message = f"Aborting run; skipped databases: {', '.join(remaining)}"
                    console.print(f"[bold red]{escape(message)}[/bold red]")
                    logger.error(message)
                    general_sink.write(message)
                break

            console.print("\n---\n")

        return self.outcomes

    def summarize(self, general_sink: LogSink) -> int:
        failed = [outcome.database for outcome in self.outcomes if not outcome.succeeded]
        migrated = len(self.outcomes) - len(failed)

        summary = f"{migrated} of {len(self.config.databases)} database(s) migrated."
        general_sink.write(summary)
        if failed:
            message = f"Failed databases: {', '.join(failed)}"
            console.print(f"[bold red]{escape(message)}[/bold red]")
            logger.warning(message)
            general_sink.write(message)

        console.print("[bold green]--- PostgreSQL Migration Completed! ---[/bold green]")
        general_sink.write("--- PostgreSQL Migration Completed! ---")
        logger.info(summary)

        if failed and self.config.fail_on_database_error:
            return EXIT_DATABASE_FAILURES
        return EXIT_OK

    def run(self) -> int:
        try:
            self.print_header()
            if self.dry_run:
                self.print_plan()
                return EXIT_OK

            self.filesystem_service.ensure_dir(self.config.work_dir)
            self.general_log_file = os.path.join(
                self.config.work_dir,
                GENERAL_LOG_TEMPLATE.format(timestamp=self._timestamp()),
            )

            with LogSink(self.general_log_file) as general_sink:
                general_sink.write(f"Using {self.config.jobs} parallel jobs for dump/restore.")
                self.validate_tools(general_sink)
                self.copy_roles(general_sink)
                self.migrate_databases(general_sink)
                return self.summarize(general_sink)

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            return EXIT_INTERRUPTED
        except MigratorError as exc:
            console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
            logger.error(str(exc))
            return EXIT_FATAL
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {escape(str(exc))}")
            logger.exception("Unexpected error")
            return EXIT_FATAL
