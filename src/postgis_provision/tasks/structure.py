"""Structure dump/load through the server's own pg_dump and psql tools."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path

import structlog

from postgis_provision.config.models import DumpSchemas, ProvisioningConfig
from postgis_provision.errors import StructureCommandError

logger = structlog.get_logger()


def _pg_env(config: ProvisioningConfig) -> dict[str, str]:
    """Connection parameters for libpq tools, passed via the environment."""
    env = dict(os.environ)
    env["PGHOST"] = config.host
    env["PGPORT"] = str(config.port)
    username = config.owner_username or config.admin_username
    if username is not None:
        env["PGUSER"] = username
    password = config.owner_password or config.admin_password
    if password is not None:
        env["PGPASSWORD"] = password.get_secret_value()
    if config.connect_timeout_seconds:
        env["PGCONNECT_TIMEOUT"] = str(config.connect_timeout_seconds)
    return env


def _run(command: list[str], config: ProvisioningConfig) -> None:
    try:
        result = subprocess.run(
            command,
            env=_pg_env(config),
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as exc:
        raise StructureCommandError(command, 127, f"{command[0]} not found") from exc
    if result.returncode != 0:
        raise StructureCommandError(command, result.returncode, result.stderr)


def dump_command(config: ProvisioningConfig, path: str | Path) -> list[str]:
    command = [
        "pg_dump",
        "--schema-only",
        "--no-privileges",
        "--no-owner",
        "--file",
        str(path),
    ]
    if config.dump.schemas == DumpSchemas.SCHEMA_SEARCH_PATH:
        command.extend(
            f"--schema={schema}"
            for schema in config.schema_search_path
            if schema != '"$user"'
        )
    command.extend(config.dump.extra_flags)
    command.append(config.database_name)
    return command


def load_command(config: ProvisioningConfig, path: str | Path) -> list[str]:
    return [
        "psql",
        "--set",
        "ON_ERROR_STOP=1",
        "--quiet",
        "--no-psqlrc",
        "--output",
        os.devnull,
        "--file",
        str(path),
        config.database_name,
    ]


def structure_dump(config: ProvisioningConfig, path: str | Path) -> None:
    """Write the target database's schema (no data) to *path*."""
    _run(dump_command(config, path), config)
    logger.info("structure.dumped", database=config.database_name, path=str(path))


def structure_load(config: ProvisioningConfig, path: str | Path) -> None:
    """Replay a structure dump from *path* into the target database."""
    p = Path(path)
    if not p.exists():
        msg = f"Structure file not found: {p}"
        raise FileNotFoundError(msg)
    _run(load_command(config, p), config)
    logger.info("structure.loaded", database=config.database_name, path=str(p))
