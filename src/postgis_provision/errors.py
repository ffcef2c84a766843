"""Exception taxonomy for database provisioning."""

from __future__ import annotations


class ProvisionError(Exception):
    """Base class for every provisioning failure."""


class InvalidConfig(ProvisionError, ValueError):
    """Raised when a configuration record is missing or malformed."""


class DatabaseConnectionError(ProvisionError):
    """Raised when a server connection cannot be established.

    Covers network failures, authentication failures and connect timeouts.
    Not retried here; callers decide whether to try again.
    """

    def __init__(self, message: str, *, host: str, database: str) -> None:
        super().__init__(message)
        self.host = host
        self.database = database


class DatabaseAlreadyExists(ProvisionError):
    """Raised when the target database is already present on the server."""

    def __init__(self, database: str) -> None:
        super().__init__(f"database '{database}' already exists")
        self.database = database


class SchemaSearchPathError(ProvisionError, ValueError):
    """Raised when an extension needs a schema missing from the search path."""


class SqlExecutionError(ProvisionError):
    """Raised when the server rejects a statement.

    The server's own message is preserved verbatim in ``server_message``.
    """

    def __init__(self, server_message: str, *, statement: str | None = None) -> None:
        super().__init__(server_message)
        self.server_message = server_message
        self.statement = statement


class StructureCommandError(ProvisionError):
    """Raised when pg_dump or psql exits with a non-zero status."""

    def __init__(self, command: list[str], returncode: int, stderr: str) -> None:
        msg = f"{command[0]} exited with status {returncode}"
        if stderr:
            msg += f": {stderr.strip()}"
        super().__init__(msg)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
