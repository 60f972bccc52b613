"""Domain errors for pgmigrator."""


class MigratorError(RuntimeError):
    """Raised when the migration cannot continue safely."""


class ConfigurationError(MigratorError):
    """Raised when required connection or database settings are missing or invalid."""


class FilesystemError(MigratorError):
    """Raised when staging or log I/O fails."""


class CommandFailure(MigratorError):
    """Raised when an external tool exits with a non-zero status."""

    def __init__(self, exit_code: int, command: str):
        self.exit_code = exit_code
        self.command = command
        super().__init__(f"Command failed ({exit_code}): {command}")
