"""Config Resolver: turn a raw configuration record into a ProvisioningConfig.

Two generations of configuration layout are accepted. The flat *legacy*
layout mirrors classic ``database.yml`` entries (``database``, ``username``,
``su_username``, ``postgis_extension``, ``postgis_schema``); the *current*
layout nests credentials (``owner``/``superuser``) and uses ``extensions``
and ``extension_schema``. Each layout is handled by one adapter below and
nothing outside this module ever sees the difference.
"""

from __future__ import annotations

from typing import Any, Protocol

import structlog
from pydantic import ValidationError

from postgis_provision.config.models import ProvisioningConfig
from postgis_provision.errors import InvalidConfig

logger = structlog.get_logger()

DEFAULT_EXTENSIONS = ["postgis"]

# Keys with the same meaning in both layouts
_SHARED_KEYS = (
    "host",
    "port",
    "encoding",
    "maintenance_database",
    "connect_timeout_seconds",
    "statement_timeout_ms",
    "retry",
    "dump",
)


def split_names(value: Any) -> list[str] | None:
    """Normalize a comma-separated string or a list into trimmed names.

    Returns None when *value* is neither, so callers can apply a default.
    """
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [str(part).strip() for part in value if str(part).strip()]
    return None


def _credentials(section: Any, layout: str, key: str) -> dict[str, Any]:
    if section is None:
        return {}
    if not isinstance(section, dict):
        msg = f"'{key}' must be a mapping with username/password ({layout} layout)"
        raise InvalidConfig(msg)
    return section


class ConfigLayout(Protocol):
    """Adapter for one generation of the raw configuration shape."""

    name: str

    def matches(self, raw: dict[str, Any]) -> bool: ...

    def normalize(self, raw: dict[str, Any]) -> dict[str, Any]: ...


class CurrentLayout:
    name = "current"

    _MARKERS = frozenset(
        {"database_name", "owner", "superuser", "extensions", "extension_schema"}
    )
    # Any of these marks the record as legacy, even alongside current keys
    _LEGACY_ONLY = frozenset(
        {
            "database",
            "username",
            "password",
            "su_username",
            "su_password",
            "postgis_extension",
            "postgis_schema",
        }
    )

    def matches(self, raw: dict[str, Any]) -> bool:
        if self._LEGACY_ONLY.intersection(raw):
            return False
        return bool(self._MARKERS.intersection(raw))

    def normalize(self, raw: dict[str, Any]) -> dict[str, Any]:
        owner = _credentials(raw.get("owner"), self.name, "owner")
        superuser = _credentials(raw.get("superuser"), self.name, "superuser")
        return {
            "database_name": raw.get("database_name"),
            "owner_username": owner.get("username"),
            "owner_password": owner.get("password"),
            "superuser_username": superuser.get("username"),
            "superuser_password": superuser.get("password"),
            "has_superuser": superuser.get("username") is not None,
            "extensions": raw.get("extensions"),
            "extension_schema": raw.get("extension_schema"),
            "schema_search_path": raw.get("schema_search_path"),
        }


class LegacyLayout:
    name = "legacy"

    def matches(self, raw: dict[str, Any]) -> bool:
        return True

    def normalize(self, raw: dict[str, Any]) -> dict[str, Any]:
        return {
            "database_name": raw.get("database"),
            "owner_username": raw.get("username"),
            "owner_password": raw.get("password"),
            "superuser_username": raw.get("su_username"),
            "superuser_password": raw.get("su_password"),
            "has_superuser": "su_username" in raw,
            "extensions": raw.get("postgis_extension"),
            "extension_schema": raw.get("postgis_schema"),
            "schema_search_path": raw.get("schema_search_path"),
        }


LAYOUTS: tuple[ConfigLayout, ...] = (CurrentLayout(), LegacyLayout())


def detect_layout(raw: dict[str, Any]) -> ConfigLayout:
    """Return the first layout adapter that recognizes *raw*."""
    for layout in LAYOUTS:
        if layout.matches(raw):
            return layout
    raise InvalidConfig("unrecognized configuration layout")


def resolve(raw_config: dict[str, Any]) -> ProvisioningConfig:
    """Build a normalized ProvisioningConfig from a raw configuration record.

    Raises:
        InvalidConfig: the database name is missing or a field is malformed.
    """
    if not isinstance(raw_config, dict):
        msg = f"Expected a configuration mapping, got {type(raw_config).__name__}"
        raise InvalidConfig(msg)

    layout = detect_layout(raw_config)
    fields = layout.normalize(raw_config)

    if not fields["database_name"]:
        msg = f"database name is required ({layout.name} layout)"
        raise InvalidConfig(msg)

    extensions = split_names(fields.pop("extensions"))
    fields["extensions"] = DEFAULT_EXTENSIONS if extensions is None else extensions

    search_path = split_names(fields.pop("schema_search_path"))
    if search_path is not None:
        fields["schema_search_path"] = search_path

    # Superuser credentials fall back to the owner's
    if fields["superuser_username"] is None:
        fields["superuser_username"] = fields["owner_username"]
    if fields["superuser_password"] is None:
        fields["superuser_password"] = fields["owner_password"]
    for key in ("owner_password", "superuser_password"):
        if fields[key] is not None:
            fields[key] = str(fields[key])

    for key in _SHARED_KEYS:
        if key in raw_config and raw_config[key] is not None:
            fields[key] = raw_config[key]

    data = {k: v for k, v in fields.items() if v is not None}
    try:
        config = ProvisioningConfig.model_validate(data)
    except ValidationError as exc:
        msg = f"Invalid provisioning config ({layout.name} layout):\n{exc}"
        raise InvalidConfig(msg) from exc

    logger.debug(
        "config.resolved",
        layout=layout.name,
        database=config.database_name,
        extensions=config.extensions,
    )
    return config
