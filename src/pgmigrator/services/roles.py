"""Role copy stage for pgmigrator."""

from typing import Optional

from rich.markup import escape

from pgmigrator.models import RunConfig
from pgmigrator.services.commands import PostgresCommandBuilder
from pgmigrator.services.log_sink import LogSink


class RoleStageService:
    """Copies cluster roles (without passwords) from source to target."""

    def __init__(self, logger, console, command_runner, filesystem_service):
        self.logger = logger
        self.console = console
        self.command_runner = command_runner
        self.filesystem_service = filesystem_service

    def copy_roles(
        self,
        config: RunConfig,
        commands: PostgresCommandBuilder,
        log_sink: Optional[LogSink] = None,
    ):
        self.console.print("[bold blue]## Copying roles from source server...[/bold blue]")
        self.logger.info("Copying roles from %s", config.source.label)

        roles_file = commands.roles_dump_path()
        try:
            self.filesystem_service.remove_file(roles_file, log_sink)
            self.command_runner.execute(commands.dump_roles(roles_file), log_sink=log_sink)
            self._note(f"Source roles saved to {roles_file}", log_sink)

            self.command_runner.execute(commands.restore_roles(roles_file), log_sink=log_sink)
            self._note("Roles restored on the target server.", log_sink)
        finally:
            self.filesystem_service.cleanup_file(roles_file, log_sink)
            self.logger.info("Roles dump file %s removed.", roles_file)

    def _note(self, message: str, log_sink: Optional[LogSink]):
        self.console.print(f"[green]{escape(message)}[/green]")
        self.logger.info(message)
        if log_sink is not None:
            log_sink.write(message)
