"""Actionable error catalog for pgmigrator."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "missing_option": {
        "what": "Missing required option '{option}'.",
        "next": "Pass `--{flag}` or set `{key}` in the config file.",
    },
    "missing_databases": {
        "what": "No databases to migrate were configured.",
        "next": "Pass one or more `--database` options or list them under `databases`.",
    },
    "reserved_database": {
        "what": "Database `{database}` is a reserved template database.",
        "next": "Remove it from the database list; template databases are recreated by the server.",
    },
    "command_not_found": {
        "what": "Required command not found: {command}.",
        "next": "Install the PostgreSQL client tools and make sure they are on PATH.",
    },
    "role_stage_failed": {
        "what": "Copying roles from the source server failed.",
        "next": "Inspect {log_file}, fix the role dump or restore, then rerun or use `--skip-roles`.",
    },
    "database_migration_failed": {
        "what": "Migration of database `{database}` failed during {stage}.",
        "next": "Inspect {log_file}; the target database may be incomplete and should be re-migrated.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
