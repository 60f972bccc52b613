import logging
import os

import click
from rich.logging import RichHandler

from .constants import DEFAULT_CONFIG_FILE, FAILURE_POLICIES
from .core import PgMigrator
from .errors import MigratorError
from .services.config_loader import ConfigLoader
from .services.run_config import RunConfigResolver, parse_flag


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option("--source-host", required=False, help="Source PostgreSQL host")
@click.option("--source-port", required=False, type=int, help="Source port (default: 5432)")
@click.option("--source-user", required=False, help="Source PostgreSQL user")
@click.option("--target-host", required=False, help="Target PostgreSQL host")
@click.option("--target-port", required=False, type=int, help="Target port (default: 5432)")
@click.option("--target-user", required=False, help="Target PostgreSQL user")
@click.option(
    "--database",
    "-d",
    "databases",
    multiple=True,
    help="Database to migrate. Repeat for several databases; they run in the given order.",
)
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option(
    "--jobs",
    "-j",
    required=False,
    type=int,
    default=None,
    help="Parallel jobs for pg_dump/pg_restore (default: half the local CPU cores).",
)
@click.option(
    "--import-roles/--skip-roles",
    default=None,
    help="Copy roles (without passwords) from source to target before the databases.",
)
@click.option(
    "--on-database-failure",
    type=click.Choice(FAILURE_POLICIES),
    default=None,
    help="Continue with the next database or abort the run when a database fails.",
)
@click.option(
    "--fail-on-database-error",
    is_flag=True,
    default=None,
    help="Exit with a non-zero status when any database failed to migrate.",
)
@click.option(
    "--drop-existing/--keep-existing",
    default=None,
    help="Drop the target database before creating it (default: drop). This is destructive.",
)
@click.option(
    "--work-dir",
    required=False,
    type=click.Path(file_okay=False),
    help="Directory for dump artifacts and migration logs (default: current directory).",
)
@click.option(
    "--admin-database",
    required=False,
    help="Target database used for role restore and CREATE/DROP DATABASE (default: postgres).",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to application log file")
@click.option(
    "--dry-run",
    is_flag=True,
    default=None,
    help="Validate configuration and print the command plan without executing it.",
)
@click.option(
    "--skip-preflight",
    is_flag=True,
    default=None,
    help="Do not check client tool availability and versions before starting.",
)
def main(
    source_host,
    source_port,
    source_user,
    target_host,
    target_port,
    target_user,
    databases,
    config,
    jobs,
    import_roles,
    on_database_failure,
    fail_on_database_error,
    drop_existing,
    work_dir,
    admin_database,
    verbose,
    log_file,
    dry_run,
    skip_preflight,
):
    """Migrate PostgreSQL databases and roles between servers.

    Passwords are read from PG_SOURCE_PASSWORD and PG_TARGET_PASSWORD.
    """
    logger = logging.getLogger("pgmigrator")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except MigratorError as exc:
        raise click.ClickException(str(exc)) from exc

    try:
        verbose = parse_flag(_resolve_option(verbose, config_values, "verbose"), "verbose", False)
        dry_run = parse_flag(_resolve_option(dry_run, config_values, "dry_run"), "dry_run", False)
        skip_preflight = parse_flag(
            _resolve_option(skip_preflight, config_values, "skip_preflight"),
            "skip_preflight",
            False,
        )
    except MigratorError as exc:
        raise click.ClickException(str(exc)) from exc
    log_file = _resolve_option(log_file, config_values, "log_file")

    values = {
        "source_host": _resolve_option(source_host, config_values, "source_host"),
        "source_port": _resolve_option(source_port, config_values, "source_port"),
        "source_user": _resolve_option(source_user, config_values, "source_user"),
        "target_host": _resolve_option(target_host, config_values, "target_host"),
        "target_port": _resolve_option(target_port, config_values, "target_port"),
        "target_user": _resolve_option(target_user, config_values, "target_user"),
        "databases": _resolve_option(list(databases) or None, config_values, "databases"),
        "jobs": _resolve_option(jobs, config_values, "jobs"),
        "import_roles": _resolve_option(import_roles, config_values, "import_roles"),
        "on_database_failure": _resolve_option(
            on_database_failure, config_values, "on_database_failure"
        ),
        "fail_on_database_error": _resolve_option(
            fail_on_database_error, config_values, "fail_on_database_error"
        ),
        "drop_existing": _resolve_option(drop_existing, config_values, "drop_existing"),
        "work_dir": _resolve_option(work_dir, config_values, "work_dir"),
        "admin_database": _resolve_option(admin_database, config_values, "admin_database"),
    }

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    try:
        run_config = RunConfigResolver(logger=logger).resolve(values, os.environ)
        migrator = PgMigrator(config=run_config, dry_run=dry_run, skip_preflight=skip_preflight)
    except MigratorError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(migrator.run())


if __name__ == "__main__":
    main()
