"""Provision PostGIS-enabled PostgreSQL databases."""

__version__ = "0.1.0"
