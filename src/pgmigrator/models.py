"""Shared domain models for pgmigrator."""

import os
import shlex
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from .constants import (
    ARCHIVE_TEMPLATE,
    DATABASE_LOG_TEMPLATE,
    DEFAULT_ADMIN_DATABASE,
    DUMP_DIR_TEMPLATE,
    LIBPQ_PASSWORD_ENV,
    ON_FAILURE_CONTINUE,
    REDACTED,
)


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Connection parameters for one side of the migration."""

    host: str
    port: int
    user: str
    secret: Optional[str] = field(default=None, repr=False)

    def connection_args(self) -> List[str]:
        return ["-h", self.host, "-p", str(self.port), "-U", self.user]

    def env_overlay(self) -> Dict[str, str]:
        if not self.secret:
            return {}
        return {LIBPQ_PASSWORD_ENV: self.secret}

    @property
    def label(self) -> str:
        return f"{self.host}:{self.port} (User: {self.user})"


@dataclass(frozen=True)
class RunConfig:
    """Immutable settings for a single migration run."""

    source: ConnectionDescriptor
    target: ConnectionDescriptor
    databases: Tuple[str, ...]
    jobs: int
    import_roles: bool = True
    on_database_failure: str = ON_FAILURE_CONTINUE
    fail_on_database_error: bool = False
    drop_existing: bool = True
    work_dir: str = "."
    admin_database: str = DEFAULT_ADMIN_DATABASE


@dataclass(frozen=True)
class CommandInvocation:
    """One external command: argv, working directory and environment overlay."""

    args: Tuple[str, ...]
    cwd: Optional[str] = None
    env: Mapping[str, str] = field(default_factory=dict, repr=False)
    description: str = ""

    def redact(self, text: str) -> str:
        for value in self.env.values():
            if value:
                text = text.replace(value, REDACTED)
        return text

    def command_text(self) -> str:
        return self.redact(" ".join(shlex.quote(arg) for arg in self.args))


@dataclass(frozen=True)
class ExecutionResult:
    exit_code: int
    stdout: Tuple[str, ...] = ()
    stderr: Tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class StageArtifacts:
    """Filesystem paths produced while migrating one database."""

    database: str
    work_dir: str
    dump_dir: str
    archive_file: str
    log_file: str

    @classmethod
    def for_database(cls, work_dir: str, database: str, timestamp: str) -> "StageArtifacts":
        return cls(
            database=database,
            work_dir=work_dir,
            dump_dir=os.path.join(work_dir, DUMP_DIR_TEMPLATE.format(database=database)),
            archive_file=os.path.join(work_dir, ARCHIVE_TEMPLATE.format(database=database)),
            log_file=os.path.join(
                work_dir,
                DATABASE_LOG_TEMPLATE.format(database=database, timestamp=timestamp),
            ),
        )

    @property
    def dump_dir_name(self) -> str:
        return os.path.basename(self.dump_dir)

    @property
    def archive_name(self) -> str:
        return os.path.basename(self.archive_file)


class DatabaseState(str, Enum):
    PENDING = "pending"
    CREATING = "creating"
    DUMPING = "dumping"
    ARCHIVING = "archiving"
    UNPACKING = "unpacking"
    RESTORING = "restoring"
    DONE = "done"
    FAILED = "failed"
    CLEANED_UP = "cleaned_up"


@dataclass
class DatabaseOutcome:
    """Tracks the states one database visited during its migration."""

    database: str
    log_file: str
    states: List[DatabaseState] = field(default_factory=lambda: [DatabaseState.PENDING])
    failed_stage: Optional[DatabaseState] = None
    error: Optional[str] = None

    @property
    def state(self) -> DatabaseState:
        return self.states[-1]

    def advance(self, state: DatabaseState):
        self.states.append(state)

    def mark_failed(self, error: str):
        self.failed_stage = self.state
        self.error = error
        self.advance(DatabaseState.FAILED)

    @property
    def succeeded(self) -> bool:
        return self.failed_stage is None and DatabaseState.DONE in self.states

    @property
    def cleaned_up(self) -> bool:
        return self.state == DatabaseState.CLEANED_UP
