"""
pgmigrator - PostgreSQL database and role migration between servers
"""

__version__ = "0.1.0"

from .core import PgMigrator
from .errors import CommandFailure, ConfigurationError, FilesystemError, MigratorError

__all__ = ["PgMigrator", "MigratorError", "CommandFailure", "ConfigurationError", "FilesystemError"]
