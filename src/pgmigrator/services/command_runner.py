"""Subprocess execution service for pgmigrator."""

import os
import subprocess
import threading
from typing import IO, List, Optional

from pgmigrator.constants import LIBPQ_PASSWORD_ENV
from pgmigrator.errors import CommandFailure, MigratorError
from pgmigrator.errors_catalog import actionable_error
from pgmigrator.models import CommandInvocation, ExecutionResult
from pgmigrator.services.log_sink import LogSink


class CommandRunner:
    """Runs external commands and mirrors their output live.

    Standard output and standard error are drained concurrently by two reader
    threads, so a chatty child never blocks on a full pipe. Every line goes to
    the console and to the optional log sink, tagged with its stream.
    """

    STREAM_TAGS = ("OUT", "ERR")

    def __init__(self, logger, console, subprocess_module=subprocess):
        self.logger = logger
        self.console = console
        self.subprocess = subprocess_module
        self._console_lock = threading.Lock()

    def execute(
        self,
        invocation: CommandInvocation,
        log_sink: Optional[LogSink] = None,
        check: bool = True,
        capture: bool = False,
    ) -> ExecutionResult:
        cmd_str = invocation.command_text()
        self.logger.info("Executing: %s", cmd_str)
        if log_sink is not None:
            log_sink.write(f"Executed command: {cmd_str}")

        env = os.environ.copy()
        # credentials come only from the invocation overlay
        env.pop(LIBPQ_PASSWORD_ENV, None)
        env.update(invocation.env)

        try:
            process = self.subprocess.Popen(
                list(invocation.args),
                cwd=invocation.cwd,
                env=env,
                stdin=self.subprocess.DEVNULL,
                stdout=self.subprocess.PIPE,
                stderr=self.subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError as exc:
            raise MigratorError(
                actionable_error("command_not_found", command=invocation.args[0])
            ) from exc
        except OSError as exc:
            raise MigratorError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        stdout_lines: List[str] = []
        stderr_lines: List[str] = []
        errors: List[BaseException] = []

        with process:
            streams = (
                (process.stdout, stdout_lines),
                (process.stderr, stderr_lines),
            )
            readers = [
                threading.Thread(
                    target=self._drain,
                    args=(stream, tag, invocation, log_sink, lines if capture else None, errors),
                    name=f"pgmigrator-{tag.lower()}-reader",
                    daemon=True,
                )
                for tag, (stream, lines) in zip(self.STREAM_TAGS, streams)
            ]
            for reader in readers:
                reader.start()
            for reader in readers:
                reader.join()
            exit_code = process.wait()

        if errors:
            first = errors[0]
            if isinstance(first, MigratorError):
                raise first
            raise MigratorError(f"Failed to mirror output of command: {cmd_str}. {first}") from first

        result = ExecutionResult(
            exit_code=exit_code,
            stdout=tuple(stdout_lines),
            stderr=tuple(stderr_lines),
        )
        if result.success:
            return result

        if check:
            raise CommandFailure(exit_code, cmd_str)

        self.logger.warning("Command failed (%s): %s", exit_code, cmd_str)
        return result

    def _drain(
        self,
        stream: IO[str],
        tag: str,
        invocation: CommandInvocation,
        log_sink: Optional[LogSink],
        captured: Optional[List[str]],
        errors: List[BaseException],
    ):
        for raw_line in stream:
            line = raw_line.rstrip("\r\n")
            if captured is not None:
                captured.append(line)
            if errors:
                # keep draining so the child can exit
                continue
            try:
                self._emit(tag, invocation.redact(line), log_sink)
            except Exception as exc:
                errors.append(exc)

    def _emit(self, tag: str, line: str, log_sink: Optional[LogSink]):
        tagged = f"{tag}: {line}"
        with self._console_lock:
            self.console.print(tagged, markup=False, highlight=False, soft_wrap=True)
        if log_sink is not None:
            log_sink.write(tagged)
