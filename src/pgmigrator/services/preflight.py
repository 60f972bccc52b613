"""Client tool preflight checks for pgmigrator."""

import re
from typing import Dict, List, Optional

from packaging import version

from pgmigrator.models import RunConfig
from pgmigrator.services.commands import PostgresCommandBuilder
from pgmigrator.services.log_sink import LogSink


class PreflightService:
    """Verifies the external tools exist and reports their versions."""

    BASE_TOOLS = ("psql", "pg_dump", "pg_restore", "tar")
    ROLE_TOOLS = ("pg_dumpall",)
    VERSION_PATTERN = re.compile(r"(\d+(?:\.\d+)*)")

    def __init__(self, logger, console, command_runner):
        self.logger = logger
        self.console = console
        self.command_runner = command_runner

    def required_tools(self, config: RunConfig) -> List[str]:
        tools = list(self.BASE_TOOLS)
        if config.import_roles:
            tools.extend(self.ROLE_TOOLS)
        return tools

    def parse_version(self, output: str) -> Optional[version.Version]:
        match = self.VERSION_PATTERN.search(output)
        if not match:
            return None
        try:
            return version.parse(match.group(1))
        except version.InvalidVersion:
            return None

    def validate_environment(
        self,
        config: RunConfig,
        commands: PostgresCommandBuilder,
        log_sink: Optional[LogSink] = None,
    ) -> Dict[str, Optional[version.Version]]:
        self.console.print("[blue]Validating client tools...[/blue]")
        found: Dict[str, Optional[version.Version]] = {}

        for tool in self.required_tools(config):
            result = self.command_runner.execute(
                commands.tool_version(tool), log_sink=log_sink, capture=True
            )
            found[tool] = self.parse_version("\n".join(result.stdout))
            self.logger.debug("%s version: %s", tool, found[tool] or "<unknown>")

        dump_version = found.get("pg_dump")
        restore_version = found.get("pg_restore")
        if dump_version and restore_version and dump_version.major != restore_version.major:
            message = (
                f"pg_dump {dump_version} and pg_restore {restore_version} differ in major version. "
                "Directory-format dumps may not restore cleanly."
            )
            self.console.print(f"[yellow]Warning: {message}[/yellow]")
            self.logger.warning(message)
            if log_sink is not None:
                log_sink.write(f"Warning: {message}")

        self.console.print("[green]Client tools are available.[/green]")
        return found
