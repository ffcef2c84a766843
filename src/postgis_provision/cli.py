"""Typer CLI for PostGIS database provisioning."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.table import Table

from postgis_provision.config.loader import load_provisioning_config
from postgis_provision.config.models import ProvisioningConfig
from postgis_provision.errors import (
    DatabaseAlreadyExists,
    InvalidConfig,
    ProvisionError,
    SchemaSearchPathError,
)
from postgis_provision.tasks.database import Outcome
from postgis_provision.tasks.provisioner import PostgisProvisioner

logger = structlog.get_logger()
console = Console()
app = typer.Typer(name="provision", help="PostGIS database provisioning")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Create PostGIS-enabled databases and manage their structure."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def _load(config_path: str, env: str | None = None) -> ProvisioningConfig:
    path = Path(config_path)
    if not path.exists():
        console.print(f"[red]Config file not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        return load_provisioning_config(path, env)
    except InvalidConfig as exc:
        console.print(f"[red]Invalid config:[/red] {exc}")
        raise typer.Exit(1) from exc


@app.command()
def validate(
    config_path: str = typer.Argument(..., help="Path to provisioning YAML"),
    env: str | None = typer.Option(None, "--env", "-e", help="Config environment"),
) -> None:
    """Resolve a configuration file and print the result."""
    config = _load(config_path, env)

    table = Table(title=f"Provisioning config — {config.database_name}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in config.masked().items():
        table.add_row(key, str(value))
    console.print(table)

    try:
        config.check_search_path()
    except SchemaSearchPathError as exc:
        console.print(f"[red]Invalid search path:[/red] {exc}")
        raise typer.Exit(1) from exc
    console.print("[green]Valid[/green]")


@app.command()
def create(
    config_path: str = typer.Argument(..., help="Path to provisioning YAML"),
    env: str | None = typer.Option(None, "--env", "-e", help="Config environment"),
    fail_if_exists: bool = typer.Option(
        False, "--fail-if-exists", help="Exit non-zero if the database exists"
    ),
) -> None:
    """Create the database and install its extensions."""
    config = _load(config_path, env)
    provisioner = PostgisProvisioner(config)
    try:
        result = provisioner.create(fail_if_exists=fail_if_exists)
    except DatabaseAlreadyExists as exc:
        console.print(f"[yellow]{exc}[/yellow]")
        raise typer.Exit(1) from exc
    except ProvisionError as exc:
        console.print(f"[red]Provisioning failed:[/red] {exc}")
        raise typer.Exit(1) from exc

    if result.outcome == Outcome.ALREADY_EXISTS:
        console.print(
            f"[yellow]Database already exists:[/yellow] {config.database_name}"
        )
    else:
        console.print(f"[green]Database created:[/green] {config.database_name}")
    console.print(f"  extensions: {', '.join(config.extensions) or '(none)'}")


@app.command()
def extensions(
    config_path: str = typer.Argument(..., help="Path to provisioning YAML"),
    env: str | None = typer.Option(None, "--env", "-e", help="Config environment"),
) -> None:
    """Install the configured extensions into an existing database."""
    config = _load(config_path, env)
    try:
        PostgisProvisioner(config).setup_gis()
    except ProvisionError as exc:
        console.print(f"[red]Extension setup failed:[/red] {exc}")
        raise typer.Exit(1) from exc
    console.print(
        f"[green]Extensions installed[/green] in {config.database_name}: "
        f"{', '.join(config.extensions) or '(none)'}"
    )


@app.command()
def drop(
    config_path: str = typer.Argument(..., help="Path to provisioning YAML"),
    env: str | None = typer.Option(None, "--env", "-e", help="Config environment"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Drop the database if it exists."""
    config = _load(config_path, env)
    if not yes:
        confirm = typer.confirm(f"Drop database '{config.database_name}'?")
        if not confirm:
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)
    try:
        PostgisProvisioner(config).drop()
    except ProvisionError as exc:
        console.print(f"[red]Drop failed:[/red] {exc}")
        raise typer.Exit(1) from exc
    console.print(f"[green]Dropped[/green] {config.database_name}")


@app.command()
def dump(
    config_path: str = typer.Argument(..., help="Path to provisioning YAML"),
    output: str = typer.Argument(..., help="Where to write the structure SQL"),
    env: str | None = typer.Option(None, "--env", "-e", help="Config environment"),
) -> None:
    """Dump the database structure with pg_dump."""
    config = _load(config_path, env)
    try:
        PostgisProvisioner(config).structure_dump(output)
    except ProvisionError as exc:
        console.print(f"[red]Dump failed:[/red] {exc}")
        raise typer.Exit(1) from exc
    console.print(f"[green]Structure written to[/green] {output}")


@app.command()
def load(
    config_path: str = typer.Argument(..., help="Path to provisioning YAML"),
    source: str = typer.Argument(..., help="Structure SQL to load"),
    env: str | None = typer.Option(None, "--env", "-e", help="Config environment"),
) -> None:
    """Load a structure dump with psql."""
    config = _load(config_path, env)
    try:
        PostgisProvisioner(config).structure_load(source)
    except (ProvisionError, FileNotFoundError) as exc:
        console.print(f"[red]Load failed:[/red] {exc}")
        raise typer.Exit(1) from exc
    console.print(f"[green]Structure loaded from[/green] {source}")
