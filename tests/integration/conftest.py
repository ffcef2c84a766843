"""Fixtures for tests against a real PostGIS server.

Set ``POSTGIS_TEST_HOST`` (and optionally ``POSTGIS_TEST_PORT``,
``POSTGIS_TEST_USER``, ``POSTGIS_TEST_PASSWORD``) to enable them, e.g. with
the ``postgis/postgis`` Docker image.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from typing import Any

import pytest

from postgis_provision.config.models import ProvisioningConfig
from postgis_provision.config.resolver import resolve
from postgis_provision.db.connection import connect_as_admin
from postgis_provision.tasks.database import drop_database

TEST_DATABASE = "postgis_tasks_test"


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    if os.environ.get("POSTGIS_TEST_HOST"):
        return
    skip = pytest.mark.skip(reason="POSTGIS_TEST_HOST not set")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def make_config() -> Callable[..., ProvisioningConfig]:
    def _make(**overrides: Any) -> ProvisioningConfig:
        raw: dict[str, Any] = {
            "database_name": TEST_DATABASE,
            "host": os.environ.get("POSTGIS_TEST_HOST", "localhost"),
            "port": os.environ.get("POSTGIS_TEST_PORT", "5432"),
            "owner": {
                "username": os.environ.get("POSTGIS_TEST_USER", "postgres"),
                "password": os.environ.get("POSTGIS_TEST_PASSWORD", "postgres"),
            },
            "connect_timeout_seconds": 5,
        }
        raw.update(overrides)
        return resolve(raw)

    return _make


@pytest.fixture
def clean_database(
    make_config: Callable[..., ProvisioningConfig],
) -> Generator[None, None, None]:
    """Drop the test database before and after each test."""
    config = make_config()
    with connect_as_admin(config) as admin:
        drop_database(admin, config)
    yield
    with connect_as_admin(config) as admin:
        drop_database(admin, config)
