"""Shared fixtures: an in-memory stand-in for a target database connection."""

from __future__ import annotations

import re
from typing import Any

import pytest
from psycopg2 import sql

from postgis_provision.config.models import ProvisioningConfig
from postgis_provision.db.statements import Statement
from postgis_provision.errors import SqlExecutionError

_CREATE_EXTENSION = re.compile(
    r'^CREATE EXTENSION IF NOT EXISTS "([^"]+)"(?: (?:WITH )?SCHEMA "([^"]+)")?$'
)


def render(query: sql.Composable) -> str:
    """Render *query* offline, quoting identifiers the way libpq does."""
    if isinstance(query, sql.Composed):
        return "".join(render(part) for part in query.seq)
    if isinstance(query, sql.SQL):
        return query.string
    if isinstance(query, sql.Identifier):
        return ".".join('"' + s.replace('"', '""') + '"' for s in query.strings)
    if isinstance(query, sql.Literal):
        return "'" + str(query.wrapped).replace("'", "''") + "'"
    raise TypeError(f"cannot render {query!r}")


class FakeHandle:
    """Records statements and keeps just enough catalog state to answer them."""

    def __init__(
        self,
        database: str = "geo_db",
        *,
        schemas: tuple[str, ...] = ("public",),
        error: str | None = None,
    ) -> None:
        self.database = database
        self.schemas = set(schemas)
        self.extensions: dict[str, str | None] = {}
        self.statements: list[str] = []
        self.closed = False
        self._error = error

    def render(self, statement: Statement | str) -> str:
        if isinstance(statement, Statement):
            return render(statement.query)
        return statement

    def execute(
        self, statement: Statement | str, params: tuple[Any, ...] | None = None
    ) -> list[tuple[Any, ...]]:
        text = self.render(statement)
        bound = statement.params if isinstance(statement, Statement) else params
        self.statements.append(text)
        if self._error is not None:
            raise SqlExecutionError(self._error, statement=text)

        if text.startswith("SELECT schema_name"):
            assert bound is not None
            return [(bound[0],)] if bound[0] in self.schemas else []
        if text.startswith("CREATE SCHEMA "):
            self.schemas.add(text.removeprefix("CREATE SCHEMA ").strip('"'))
            return []
        match = _CREATE_EXTENSION.match(text)
        if match and match.group(1) not in self.extensions:
            self.extensions[match.group(1)] = match.group(2)
        return []

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> FakeHandle:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


@pytest.fixture
def fake_handle() -> FakeHandle:
    return FakeHandle()


def make_config(**overrides: Any) -> ProvisioningConfig:
    fields: dict[str, Any] = {
        "database_name": "geo_db",
        "owner_username": "geo_owner",
        "owner_password": "owner_pw",
        "superuser_username": "geo_owner",
        "superuser_password": "owner_pw",
    }
    fields.update(overrides)
    return ProvisioningConfig(**fields)


@pytest.fixture
def config_factory():
    return make_config


@pytest.fixture
def handle_factory():
    return FakeHandle
