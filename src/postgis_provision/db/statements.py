"""SQL statement builders for provisioning DDL.

Names are composed with ``psycopg2.sql`` so the driver quotes every
identifier and literal. Values that can be bound are passed as parameters
instead.
"""

from __future__ import annotations

from typing import Any, NamedTuple

from psycopg2 import sql


class Statement(NamedTuple):
    """A composed query plus bound parameters."""

    query: sql.Composable
    params: tuple[Any, ...] = ()


def create_database(name: str, *, encoding: str, owner: str | None = None) -> Statement:
    # CREATE DATABASE does not accept bind parameters
    query = sql.SQL("CREATE DATABASE {} ENCODING = {}").format(
        sql.Identifier(name), sql.Literal(encoding)
    )
    if owner is not None:
        query += sql.SQL(" OWNER = {}").format(sql.Identifier(owner))
    return Statement(query)


def drop_database(name: str) -> Statement:
    return Statement(
        sql.SQL("DROP DATABASE IF EXISTS {}").format(sql.Identifier(name))
    )


def schema_exists(name: str) -> Statement:
    return Statement(
        sql.SQL(
            "SELECT schema_name FROM information_schema.schemata"
            " WHERE schema_name = %s"
        ),
        (name,),
    )


def create_schema(name: str) -> Statement:
    return Statement(sql.SQL("CREATE SCHEMA {}").format(sql.Identifier(name)))


def grant_schema_to_public(name: str) -> Statement:
    return Statement(
        sql.SQL("GRANT ALL ON SCHEMA {} TO PUBLIC").format(sql.Identifier(name))
    )


def create_extension(
    name: str, *, schema: str | None = None, with_keyword: bool = True
) -> Statement:
    """Build an idempotent CREATE EXTENSION statement.

    ``with_keyword=False`` renders the bare ``SCHEMA`` form used for the
    topology extension; both spellings are accepted by the server.
    """
    query = sql.SQL("CREATE EXTENSION IF NOT EXISTS {}").format(
        sql.Identifier(name)
    )
    if schema is not None:
        keyword = sql.SQL("WITH SCHEMA" if with_keyword else "SCHEMA")
        query += sql.SQL(" {} {}").format(keyword, sql.Identifier(schema))
    return Statement(query)
