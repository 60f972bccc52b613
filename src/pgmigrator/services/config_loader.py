"""Configuration loader for pgmigrator."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from pgmigrator.errors import ConfigurationError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults.

    Passwords are deliberately not supported keys: they are read from the
    environment only.
    """

    SUPPORTED_KEYS = {
        "source_host",
        "source_port",
        "source_user",
        "target_host",
        "target_port",
        "target_user",
        "databases",
        "jobs",
        "import_roles",
        "on_database_failure",
        "fail_on_database_error",
        "drop_existing",
        "work_dir",
        "admin_database",
        "verbose",
        "log_file",
        "dry_run",
        "skip_preflight",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigurationError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigurationError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConfigurationError(f"Unknown configuration keys: {unknown_list}")

        databases = parsed.get("databases")
        if isinstance(databases, str):
            parsed["databases"] = [databases]
        elif databases is not None and not isinstance(databases, list):
            raise ConfigurationError("`databases` must be a list of database names.")

        return parsed
