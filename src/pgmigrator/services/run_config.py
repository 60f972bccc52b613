"""Run configuration resolution for pgmigrator."""

import os
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from pgmigrator.constants import (
    ADMIN_DATABASES,
    DEFAULT_ADMIN_DATABASE,
    DEFAULT_PORT,
    FAILURE_POLICIES,
    ON_FAILURE_CONTINUE,
    RESERVED_DATABASES,
    SOURCE_PASSWORD_ENV,
    TARGET_PASSWORD_ENV,
)
from pgmigrator.errors import ConfigurationError
from pgmigrator.errors_catalog import actionable_error
from pgmigrator.models import ConnectionDescriptor, RunConfig


def resolve_jobs(override: Optional[int] = None, cpu_count: Optional[int] = None) -> int:
    """Return the parallel job count for pg_dump/pg_restore.

    An explicit override wins. Otherwise half of the local logical cores are
    used, never less than one.
    """
    if override is not None:
        try:
            jobs = int(override)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Parallel jobs must be an integer, got {override!r}.") from exc
        if jobs < 1:
            raise ConfigurationError(f"Parallel jobs must be at least 1, got {jobs}.")
        return jobs

    if cpu_count is None:
        cpu_count = os.cpu_count() or 1
    return max(1, cpu_count // 2)


def parse_flag(value: Any, key: str, default: bool) -> bool:
    """Return a boolean option, rejecting strings such as a quoted "false"."""
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigurationError(f"Option '{key}' must be true or false, got {value!r}.")
    return value


class RunConfigResolver:
    """Builds an immutable RunConfig from merged CLI/config values."""

    def __init__(self, logger):
        self.logger = logger

    def resolve(self, values: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> RunConfig:
        environ = os.environ if environ is None else environ

        source = self._connection(values, "source", environ.get(SOURCE_PASSWORD_ENV))
        target = self._connection(values, "target", environ.get(TARGET_PASSWORD_ENV))
        databases = self.validate_databases(values.get("databases") or ())

        on_failure = values.get("on_database_failure") or ON_FAILURE_CONTINUE
        if on_failure not in FAILURE_POLICIES:
            raise ConfigurationError(
                f"Invalid on_database_failure '{on_failure}'. "
                f"Supported values: {', '.join(FAILURE_POLICIES)}"
            )

        work_dir = os.path.abspath(values.get("work_dir") or os.getcwd())
        if not os.path.isdir(work_dir):
            raise ConfigurationError(f"Work directory not found: {work_dir}")

        return RunConfig(
            source=source,
            target=target,
            databases=databases,
            jobs=resolve_jobs(values.get("jobs")),
            import_roles=self._flag(values, "import_roles", True),
            on_database_failure=on_failure,
            fail_on_database_error=self._flag(values, "fail_on_database_error", False),
            drop_existing=self._flag(values, "drop_existing", True),
            work_dir=work_dir,
            admin_database=values.get("admin_database") or DEFAULT_ADMIN_DATABASE,
        )

    def validate_databases(self, databases: Iterable[Any]) -> Tuple[str, ...]:
        names = []
        for raw in databases:
            if not isinstance(raw, str) or not raw.strip():
                raise ConfigurationError(f"Invalid database name: {raw!r}")
            name = raw.strip()
            if name.startswith("-") or "/" in name or "\x00" in name:
                raise ConfigurationError(f"Invalid database name: {name!r}")
            if name in RESERVED_DATABASES:
                raise ConfigurationError(actionable_error("reserved_database", database=name))
            if name in ADMIN_DATABASES:
                self.logger.warning(
                    "Database '%s' is an administrative database. Migrating it is unusual.", name
                )
            if name in names:
                raise ConfigurationError(f"Database '{name}' is listed more than once.")
            names.append(name)

        if not names:
            raise ConfigurationError(actionable_error("missing_databases"))
        return tuple(names)

    def _connection(self, values: Dict[str, Any], side: str, secret: Optional[str]) -> ConnectionDescriptor:
        host = values.get(f"{side}_host")
        user = values.get(f"{side}_user")
        for key, value in ((f"{side}_host", host), (f"{side}_user", user)):
            if not value:
                raise ConfigurationError(
                    actionable_error(
                        "missing_option",
                        option=f"--{key.replace('_', '-')}",
                        flag=key.replace("_", "-"),
                        key=key,
                    )
                )

        raw_port = values.get(f"{side}_port")
        try:
            port = DEFAULT_PORT if raw_port is None else int(raw_port)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid {side} port: {raw_port!r}") from exc
        if not 1 <= port <= 65535:
            raise ConfigurationError(f"Invalid {side} port: {port}")

        return ConnectionDescriptor(host=str(host), port=port, user=str(user), secret=secret or None)

    @staticmethod
    def _flag(values: Dict[str, Any], key: str, default: bool) -> bool:
        return parse_flag(values.get(key), key, default)
