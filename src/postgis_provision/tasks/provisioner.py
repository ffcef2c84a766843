"""Drive a full provisioning request end to end."""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from pathlib import Path

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from postgis_provision.config.models import ProvisioningConfig
from postgis_provision.db.connection import (
    ConnectionHandle,
    connect_as_admin,
    connect_to_database,
)
from postgis_provision.errors import DatabaseAlreadyExists, DatabaseConnectionError
from postgis_provision.tasks.database import (
    Outcome,
    ProvisioningResult,
    create_database,
    drop_database,
)
from postgis_provision.tasks.extensions import install_extensions
from postgis_provision.tasks.structure import structure_dump, structure_load

logger = structlog.get_logger()


class ProvisionState(StrEnum):
    START = "start"
    ADMIN_CONNECTED = "admin_connected"
    DATABASE_CREATED = "database_created"
    DATABASE_EXISTS = "database_exists"
    TARGET_CONNECTED = "target_connected"
    EXTENSIONS_INSTALLED = "extensions_installed"
    DONE = "done"


class PostgisProvisioner:
    """Creates a database and installs its spatial extensions.

    Each phase opens and closes its own connection: the admin connection is
    released before the target database is opened. Connection attempts are
    retried according to ``config.retry``; statements never are.
    """

    def __init__(self, config: ProvisioningConfig) -> None:
        self._config = config
        self.state = ProvisionState.START

    @property
    def config(self) -> ProvisioningConfig:
        return self._config

    def _advance(self, state: ProvisionState) -> None:
        self.state = state
        logger.debug(
            "provision.state", database=self._config.database_name, state=str(state)
        )

    def _connect(
        self, connect: Callable[[ProvisioningConfig], ConnectionHandle]
    ) -> ConnectionHandle:
        retry_cfg = self._config.retry

        @retry(
            retry=retry_if_exception_type(DatabaseConnectionError),
            stop=stop_after_attempt(retry_cfg.max_attempts),
            wait=wait_exponential(
                multiplier=retry_cfg.initial_wait_seconds,
                max=retry_cfg.max_wait_seconds,
            ),
            reraise=True,
        )
        def _attempt() -> ConnectionHandle:
            return connect(self._config)

        return _attempt()

    def create(self, *, fail_if_exists: bool = False) -> ProvisioningResult:
        """Create the database (or accept an existing one) and set up GIS.

        Raises:
            SchemaSearchPathError: topology requested without ``topology`` in
                the search path. Raised before any connection is opened.
            DatabaseAlreadyExists: the database exists and *fail_if_exists*.
            SqlExecutionError: the server rejected CREATE DATABASE or an
                extension statement.
        """
        self._advance(ProvisionState.START)
        self._config.check_search_path()
        with self._connect(connect_as_admin) as admin:
            self._advance(ProvisionState.ADMIN_CONNECTED)
            result = create_database(admin, self._config)

        if result.outcome == Outcome.FAILED:
            result.raise_for_outcome()
        if result.outcome == Outcome.ALREADY_EXISTS:
            if fail_if_exists:
                raise DatabaseAlreadyExists(self._config.database_name)
            self._advance(ProvisionState.DATABASE_EXISTS)
        else:
            self._advance(ProvisionState.DATABASE_CREATED)

        self.setup_gis()
        self._advance(ProvisionState.DONE)
        logger.info(
            "provision.completed",
            database=self._config.database_name,
            outcome=str(result.outcome),
        )
        return result

    def setup_gis(self) -> None:
        """Install the configured extensions into the existing target database."""
        self._config.check_search_path()
        with self._connect(connect_to_database) as target:
            self._advance(ProvisionState.TARGET_CONNECTED)
            install_extensions(target, self._config)
            self._advance(ProvisionState.EXTENSIONS_INSTALLED)

    def drop(self) -> None:
        with self._connect(connect_as_admin) as admin:
            drop_database(admin, self._config)

    def structure_dump(self, path: str | Path) -> None:
        structure_dump(self._config, path)

    def structure_load(self, path: str | Path) -> None:
        structure_load(self._config, path)
