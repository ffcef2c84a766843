"""Unit tests for the Database Creator."""

from __future__ import annotations

import pytest

from postgis_provision.errors import DatabaseAlreadyExists, SqlExecutionError
from postgis_provision.tasks.database import (
    Outcome,
    ProvisioningResult,
    create_database,
    drop_database,
)


class TestCreateDatabase:
    def test_creates_with_encoding(self, fake_handle, config_factory):
        result = create_database(fake_handle, config_factory())

        assert result == ProvisioningResult("geo_db", Outcome.CREATED)
        assert fake_handle.statements == [
            """CREATE DATABASE "geo_db" ENCODING = 'utf8'"""
        ]

    def test_owner_set_when_superuser_configured(self, fake_handle, config_factory):
        cfg = config_factory(
            superuser_username="postgres",
            superuser_password="supw",
            has_superuser=True,
        )
        create_database(fake_handle, cfg)

        assert fake_handle.statements == [
            'CREATE DATABASE "geo_db" ENCODING = \'utf8\' OWNER = "geo_owner"'
        ]

    def test_custom_encoding(self, fake_handle, config_factory):
        create_database(fake_handle, config_factory(encoding="LATIN1"))
        assert fake_handle.statements[0].endswith("ENCODING = 'LATIN1'")

    def test_already_exists_is_classified(self, handle_factory, config_factory):
        handle = handle_factory(
            "postgres", error='ERROR:  database "geo_db" already exists'
        )
        result = create_database(handle, config_factory())

        assert result.outcome == Outcome.ALREADY_EXISTS
        assert result.ok

    def test_rerun_never_generic_failure(self, handle_factory, config_factory):
        handle = handle_factory(
            "postgres", error='ERROR:  database "geo_db" already exists'
        )
        cfg = config_factory()
        outcomes = {create_database(handle, cfg).outcome for _ in range(3)}
        assert outcomes == {Outcome.ALREADY_EXISTS}

    def test_other_server_error_is_failed(self, handle_factory, config_factory):
        handle = handle_factory(
            "postgres", error="ERROR:  permission denied to create database"
        )
        result = create_database(handle, config_factory())

        assert result.outcome == Outcome.FAILED
        assert result.reason == "ERROR:  permission denied to create database"
        assert not result.ok


class TestProvisioningResult:
    def test_created_does_not_raise(self):
        ProvisioningResult("geo_db", Outcome.CREATED).raise_for_outcome()

    def test_already_exists_raises(self):
        with pytest.raises(DatabaseAlreadyExists, match="geo_db"):
            ProvisioningResult("geo_db", Outcome.ALREADY_EXISTS).raise_for_outcome()

    def test_failed_raises_with_reason(self):
        result = ProvisioningResult("geo_db", Outcome.FAILED, reason="disk full")
        with pytest.raises(SqlExecutionError, match="disk full"):
            result.raise_for_outcome()


class TestDropDatabase:
    def test_drop_if_exists(self, fake_handle, config_factory):
        drop_database(fake_handle, config_factory())
        assert fake_handle.statements == ['DROP DATABASE IF EXISTS "geo_db"']

    def test_server_error_propagates(self, handle_factory, config_factory):
        handle = handle_factory(
            "postgres", error="ERROR:  database is being accessed by other users"
        )
        with pytest.raises(SqlExecutionError, match="other users"):
            drop_database(handle, config_factory())
