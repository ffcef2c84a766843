"""Database Creator: CREATE / DROP DATABASE against an admin connection."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

import structlog

from postgis_provision.config.models import ProvisioningConfig
from postgis_provision.db import statements
from postgis_provision.db.connection import ConnectionHandle
from postgis_provision.errors import DatabaseAlreadyExists, SqlExecutionError

logger = structlog.get_logger()

_ALREADY_EXISTS = re.compile(r"database .* already exists")


class Outcome(StrEnum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"


@dataclass(frozen=True)
class ProvisioningResult:
    database: str
    outcome: Outcome
    reason: str = ""

    @property
    def ok(self) -> bool:
        """True for outcomes an idempotent caller treats as success."""
        return self.outcome != Outcome.FAILED

    def raise_for_outcome(self) -> None:
        """Raise the matching error for anything but a fresh creation."""
        if self.outcome == Outcome.ALREADY_EXISTS:
            raise DatabaseAlreadyExists(self.database)
        if self.outcome == Outcome.FAILED:
            raise SqlExecutionError(self.reason)


def create_database(
    admin_handle: ConnectionHandle, config: ProvisioningConfig
) -> ProvisioningResult:
    """Create the target database with the configured encoding.

    When a distinct superuser is configured the new database is owned by
    the owner account. A server report that the database already exists is
    classified as ``ALREADY_EXISTS``; any other server error is ``FAILED``
    with the server's message as the reason.
    """
    owner = config.owner_username if config.has_superuser else None
    stmt = statements.create_database(
        config.database_name, encoding=config.encoding, owner=owner
    )
    try:
        admin_handle.execute(stmt)
    except SqlExecutionError as exc:
        if _ALREADY_EXISTS.search(exc.server_message):
            logger.warning("database.already_exists", database=config.database_name)
            return ProvisioningResult(config.database_name, Outcome.ALREADY_EXISTS)
        logger.error(
            "database.create_failed",
            database=config.database_name,
            error=exc.server_message,
        )
        return ProvisioningResult(
            config.database_name, Outcome.FAILED, reason=exc.server_message
        )

    logger.info(
        "database.created",
        database=config.database_name,
        encoding=config.encoding,
        owner=owner,
    )
    return ProvisioningResult(config.database_name, Outcome.CREATED)


def drop_database(admin_handle: ConnectionHandle, config: ProvisioningConfig) -> None:
    """Drop the target database if it exists."""
    admin_handle.execute(statements.drop_database(config.database_name))
    logger.info("database.dropped", database=config.database_name)
