"""Filesystem helpers for pgmigrator."""

import logging
import os
import shutil
from typing import Optional

from rich.console import Console
from rich.markup import escape

from pgmigrator.errors import FilesystemError
from pgmigrator.services.log_sink import LogSink


class FileSystemService:
    """Encapsulates staging and cleanup of transient artifacts.

    ``remove_*`` raise FilesystemError and are used while staging, where a
    stale artifact must not survive. ``cleanup_*`` only warn, because cleanup
    runs after failures too and must not mask them.
    """

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def ensure_dir(self, path: str):
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as exc:
            raise FilesystemError(f"Could not create directory {path}: {exc}") from exc

    def remove_file(self, path: str, log_sink: Optional[LogSink] = None):
        if not os.path.lexists(path):
            return
        try:
            os.remove(path)
        except OSError as exc:
            raise FilesystemError(f"Could not remove {path}: {exc}") from exc
        self._removed(path, log_sink)

    def remove_dir(self, path: str, log_sink: Optional[LogSink] = None):
        if not os.path.exists(path):
            return
        try:
            shutil.rmtree(path)
        except OSError as exc:
            raise FilesystemError(f"Could not remove {path}: {exc}") from exc
        self._removed(path, log_sink)

    def cleanup_file(self, path: str, log_sink: Optional[LogSink] = None):
        try:
            self.remove_file(path, log_sink)
        except FilesystemError as exc:
            self._warn(str(exc), log_sink)

    def cleanup_dir(self, path: str, log_sink: Optional[LogSink] = None):
        try:
            self.remove_dir(path, log_sink)
        except FilesystemError as exc:
            self._warn(str(exc), log_sink)

    def _removed(self, path: str, log_sink: Optional[LogSink]):
        self.logger.debug("Removed: %s", path)
        if log_sink is not None:
            log_sink.write(f"Removed: {path}")

    def _warn(self, message: str, log_sink: Optional[LogSink]):
        message = f"Warning: {message}"
        self.console.print(f"[yellow]{escape(message)}[/yellow]")
        self.logger.warning(message)
        if log_sink is None:
            return
        try:
            log_sink.write(message)
        except FilesystemError as exc:
            self.logger.warning("Could not record cleanup warning in %s: %s", log_sink.path, exc)
