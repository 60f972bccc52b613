"""Shared constants for pgmigrator."""

DEFAULT_CONFIG_FILE = ".pgmigrator.yml"
DEFAULT_PORT = 5432
DEFAULT_ADMIN_DATABASE = "postgres"

SOURCE_PASSWORD_ENV = "PG_SOURCE_PASSWORD"
TARGET_PASSWORD_ENV = "PG_TARGET_PASSWORD"
LIBPQ_PASSWORD_ENV = "PGPASSWORD"

RESERVED_DATABASES = ("template0", "template1")
ADMIN_DATABASES = ("postgres",)

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
GENERAL_LOG_TEMPLATE = "migration_general_log_{timestamp}.log"
DATABASE_LOG_TEMPLATE = "{database}_migration_log_{timestamp}.log"
DUMP_DIR_TEMPLATE = "{database}_dump_dir"
ARCHIVE_TEMPLATE = "{database}_dump.tar.gz"
ROLES_DUMP_TEMPLATE = "roles_dump_{host}.sql"

ON_FAILURE_CONTINUE = "continue"
ON_FAILURE_ABORT = "abort"
FAILURE_POLICIES = (ON_FAILURE_CONTINUE, ON_FAILURE_ABORT)

REDACTED = "********"

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_DATABASE_FAILURES = 3
EXIT_INTERRUPTED = 130
