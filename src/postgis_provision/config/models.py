"""Pydantic configuration models for database provisioning."""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from postgis_provision.errors import SchemaSearchPathError

TOPOLOGY_EXTENSION = "postgis_topology"
TOPOLOGY_SCHEMA = "topology"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_$-]*$")


def _check_identifier(kind: str, value: str) -> str:
    if not _IDENTIFIER.match(value):
        msg = f"{kind} '{value}' is not a valid identifier"
        raise ValueError(msg)
    return value


class RetryConfig(BaseModel):
    """Retry / backoff for connection attempts (one attempt by default)."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=1, ge=1)
    initial_wait_seconds: float = Field(default=1.0, gt=0)
    max_wait_seconds: float = Field(default=30.0, gt=0)


class DumpSchemas(StrEnum):
    """Which schemas ``structure_dump`` restricts itself to."""

    ALL = "all"
    SCHEMA_SEARCH_PATH = "schema_search_path"


class DumpConfig(BaseModel):
    """Options passed through to pg_dump."""

    model_config = ConfigDict(frozen=True)

    schemas: DumpSchemas = DumpSchemas.ALL
    extra_flags: list[str] = Field(default_factory=list)


class ProvisioningConfig(BaseModel):
    """Normalized, immutable provisioning request.

    Superuser credentials default to the owner's. ``has_superuser`` records
    whether a distinct superuser was configured; only then is the new
    database handed to the owner.
    """

    model_config = ConfigDict(frozen=True)

    database_name: str
    host: str = "localhost"
    port: int = Field(default=5432, ge=1, le=65535)
    owner_username: str | None = None
    owner_password: SecretStr | None = None
    superuser_username: str | None = None
    superuser_password: SecretStr | None = None
    has_superuser: bool = False
    encoding: str = "utf8"
    schema_search_path: list[str] = Field(default_factory=lambda: ["public"])
    extensions: list[str] = Field(default_factory=lambda: ["postgis"])
    extension_schema: str | None = None
    maintenance_database: str = "postgres"
    connect_timeout_seconds: int = Field(default=10, ge=0)
    statement_timeout_ms: int = Field(default=0, ge=0)
    retry: RetryConfig = RetryConfig()
    dump: DumpConfig = DumpConfig()

    @field_validator("database_name", "maintenance_database")
    @classmethod
    def validate_database_name(cls, v: str) -> str:
        return _check_identifier("database name", v)

    @field_validator("extension_schema")
    @classmethod
    def validate_extension_schema(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _check_identifier("schema", v)

    @field_validator("extensions")
    @classmethod
    def validate_extensions(cls, v: list[str]) -> list[str]:
        return [_check_identifier("extension", name) for name in v]

    @field_validator("schema_search_path")
    @classmethod
    def validate_search_path(cls, v: list[str]) -> list[str]:
        # "$user" is the server default's placeholder entry
        return [
            name if name == '"$user"' else _check_identifier("schema", name)
            for name in v
        ]

    @property
    def admin_username(self) -> str | None:
        return self.superuser_username or self.owner_username

    @property
    def admin_password(self) -> SecretStr | None:
        if self.superuser_password is not None:
            return self.superuser_password
        return self.owner_password

    @property
    def requires_topology(self) -> bool:
        return TOPOLOGY_EXTENSION in self.extensions

    def check_search_path(self) -> None:
        """Raise SchemaSearchPathError if the topology extension cannot be placed."""
        if self.requires_topology and TOPOLOGY_SCHEMA not in self.schema_search_path:
            msg = (
                f"'{TOPOLOGY_SCHEMA}' must be in schema_search_path "
                f"for {TOPOLOGY_EXTENSION}"
            )
            raise SchemaSearchPathError(msg)

    def masked(self) -> dict[str, object]:
        """Return the config as a plain dict with passwords masked."""
        return self.model_dump(mode="json")
