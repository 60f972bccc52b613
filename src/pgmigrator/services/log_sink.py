"""Append-only log file sink for pgmigrator."""

import threading
from typing import Optional, TextIO

from pgmigrator.errors import FilesystemError


class LogSink:
    """Thread-safe append-only text log.

    Inside a ``with`` block the file handle stays open; outside of one every
    write opens the file in append mode for that single line. The file is
    never truncated.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._file: Optional[TextIO] = None

    def __enter__(self) -> "LogSink":
        with self._lock:
            try:
                self._file = open(self.path, "a", encoding="utf-8")
            except OSError as exc:
                raise FilesystemError(f"Could not open log file '{self.path}': {exc}") from exc
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def write(self, line: str):
        text = line if line.endswith("\n") else f"{line}\n"
        with self._lock:
            try:
                if self._file is not None:
                    self._file.write(text)
                    self._file.flush()
                else:
                    with open(self.path, "a", encoding="utf-8") as file_obj:
                        file_obj.write(text)
            except (OSError, ValueError) as exc:
                raise FilesystemError(f"Could not write log file '{self.path}': {exc}") from exc

    def close(self):
        with self._lock:
            if self._file is not None:
                try:
                    self._file.close()
                finally:
                    self._file = None
