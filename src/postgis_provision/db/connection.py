"""Scoped PostgreSQL connections for the admin and target phases."""

from __future__ import annotations

from types import TracebackType
from typing import Any

import psycopg2
import structlog
from pydantic import SecretStr

from postgis_provision.config.models import ProvisioningConfig
from postgis_provision.db.statements import Statement
from postgis_provision.errors import DatabaseConnectionError, SqlExecutionError

logger = structlog.get_logger()


class ConnectionHandle:
    """One autocommit connection, owned by whoever opened it.

    Use as a context manager; the connection is closed on every exit path.
    Every executed statement's text is kept in ``statements``.
    """

    def __init__(self, conn: Any, *, database: str) -> None:
        self._conn = conn
        self.database = database
        self.statements: list[str] = []

    @property
    def closed(self) -> bool:
        return self._conn is None

    def render(self, statement: Statement | str) -> str:
        """Return the SQL text the server will receive for *statement*."""
        if isinstance(statement, Statement):
            return statement.query.as_string(self._conn)
        return statement

    def execute(
        self, statement: Statement | str, params: tuple[Any, ...] | None = None
    ) -> list[tuple[Any, ...]]:
        """Run one statement and return its rows (empty for DDL)."""
        if self._conn is None:
            msg = f"connection to '{self.database}' is closed"
            raise SqlExecutionError(msg)

        if isinstance(statement, Statement):
            query: Any = statement.query
            bound = statement.params or params
        else:
            query = statement
            bound = params
        text = self.render(statement)
        self.statements.append(text)
        logger.debug("db.execute", database=self.database, statement=text)

        try:
            with self._conn.cursor() as cur:
                cur.execute(query, bound or None)
                if cur.description is None:
                    return []
                return list(cur.fetchall())
        except psycopg2.Error as exc:
            message = (exc.pgerror or str(exc)).strip()
            raise SqlExecutionError(message, statement=text) from exc

    def close(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.close()
        finally:
            self._conn = None
            logger.debug("db.closed", database=self.database)

    def __enter__(self) -> ConnectionHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def _connect(
    config: ProvisioningConfig,
    *,
    database: str,
    username: str | None,
    password: SecretStr | None,
    search_path: str | None = None,
) -> ConnectionHandle:
    kwargs: dict[str, Any] = {
        "host": config.host,
        "port": config.port,
        "dbname": database,
        "connect_timeout": config.connect_timeout_seconds,
    }
    if username is not None:
        kwargs["user"] = username
    if password is not None:
        kwargs["password"] = password.get_secret_value()

    options: list[str] = []
    if search_path is not None:
        options.append(f"-c search_path={search_path}")
    if config.statement_timeout_ms:
        options.append(f"-c statement_timeout={config.statement_timeout_ms}")
    if options:
        kwargs["options"] = " ".join(options)

    try:
        conn = psycopg2.connect(**kwargs)
    except psycopg2.OperationalError as exc:
        logger.error(
            "db.connect_failed",
            host=config.host,
            port=config.port,
            database=database,
            user=username,
        )
        raise DatabaseConnectionError(
            str(exc).strip(), host=config.host, database=database
        ) from exc

    # CREATE DATABASE cannot run inside a transaction block
    conn.autocommit = True
    logger.debug("db.connected", host=config.host, database=database, user=username)
    return ConnectionHandle(conn, database=database)


def connect_as_admin(config: ProvisioningConfig) -> ConnectionHandle:
    """Connect to the server's maintenance database with superuser credentials.

    The search path is forced to ``public`` regardless of the configured one.

    Raises:
        DatabaseConnectionError: network, authentication or timeout failure.
    """
    return _connect(
        config,
        database=config.maintenance_database,
        username=config.admin_username,
        password=config.admin_password,
        search_path="public",
    )


def connect_to_database(
    config: ProvisioningConfig, *, as_superuser: bool = True
) -> ConnectionHandle:
    """Connect to the target database itself.

    The extension phase connects as superuser with the search path forced
    to ``public``; owner connections use the server's default search path.
    """
    if as_superuser:
        return _connect(
            config,
            database=config.database_name,
            username=config.admin_username,
            password=config.admin_password,
            search_path="public",
        )
    return _connect(
        config,
        database=config.database_name,
        username=config.owner_username,
        password=config.owner_password,
    )
