"""Extension Installer: idempotent CREATE SCHEMA / CREATE EXTENSION."""

from __future__ import annotations

import structlog

from postgis_provision.config.models import (
    TOPOLOGY_EXTENSION,
    TOPOLOGY_SCHEMA,
    ProvisioningConfig,
)
from postgis_provision.db import statements
from postgis_provision.db.connection import ConnectionHandle

logger = structlog.get_logger()


def schema_exists(handle: ConnectionHandle, schema: str) -> bool:
    return bool(handle.execute(statements.schema_exists(schema)))


def ensure_schema(handle: ConnectionHandle, schema: str) -> bool:
    """Create *schema* open to PUBLIC unless it exists. Returns True if created."""
    if schema_exists(handle, schema):
        return False
    handle.execute(statements.create_schema(schema))
    handle.execute(statements.grant_schema_to_public(schema))
    logger.info("schema.created", schema=schema, database=handle.database)
    return True


def install_extensions(handle: ConnectionHandle, config: ProvisioningConfig) -> None:
    """Install every configured extension, in order, into the target database.

    The topology extension always lands in the fixed ``topology`` schema.
    Other extensions go to ``extension_schema`` (created on demand) when it
    is configured, else to the server default. All statements use
    ``IF NOT EXISTS`` so repeated runs are no-ops.

    Raises:
        SchemaSearchPathError: topology requested without ``topology`` in the
            search path. Raised before any SQL is issued.
        SqlExecutionError: the server rejected a statement.
    """
    config.check_search_path()

    for name in config.extensions:
        if name == TOPOLOGY_EXTENSION:
            schema: str | None = TOPOLOGY_SCHEMA
            stmt = statements.create_extension(
                name, schema=TOPOLOGY_SCHEMA, with_keyword=False
            )
        elif config.extension_schema is not None:
            schema = config.extension_schema
            ensure_schema(handle, schema)
            stmt = statements.create_extension(name, schema=schema)
        else:
            schema = None
            stmt = statements.create_extension(name)

        handle.execute(stmt)
        logger.info(
            "extension.installed",
            extension=name,
            schema=schema,
            database=handle.database,
        )
