"""YAML + environment variable config loader."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, cast

import yaml

from postgis_provision.config.defaults import load_defaults, merge_configs
from postgis_provision.config.models import ProvisioningConfig
from postgis_provision.config.resolver import resolve
from postgis_provision.errors import InvalidConfig

# Matches ${VAR} or ${VAR:-default}
_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-((?:[^}\\]|\\.)*))?}")

DEFAULT_ENVIRONMENT_KEY = "default_environment"


def _resolve_env_str(value: str) -> str:
    """Replace all ${VAR} / ${VAR:-default} references in a string."""

    def _replace(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)
        env_val = os.environ.get(var_name)
        if env_val is not None:
            return env_val
        if default is not None:
            return default.replace("\\}", "}")
        msg = f"Environment variable '{var_name}' is not set and no default provided"
        raise InvalidConfig(msg)

    return _ENV_PATTERN.sub(_replace, value)


def resolve_env_vars(data: Any) -> Any:
    """Recursively resolve ${VAR} and ${VAR:-default} in parsed YAML data."""
    if isinstance(data, str):
        return _resolve_env_str(data)
    if isinstance(data, dict):
        return {k: resolve_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [resolve_env_vars(item) for item in data]
    return data


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict."""
    p = Path(path)
    if not p.exists():
        msg = f"Config file not found: {p}"
        raise FileNotFoundError(msg)
    try:
        with p.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        msg = f"Failed to parse YAML in {p}"
        if hasattr(exc, "problem_mark") and exc.problem_mark is not None:
            mark = exc.problem_mark
            msg += f" at line {mark.line + 1}, column {mark.column + 1}"
        msg += f": {exc}"
        raise InvalidConfig(msg) from exc
    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping at top level in {p}, got {type(data).__name__}"
        raise InvalidConfig(msg)
    return cast(dict[str, Any], data)


def select_environment(
    data: dict[str, Any], environment: str | None = None
) -> dict[str, Any]:
    """Pick one environment's mapping out of a multi-environment document.

    Single-environment documents are returned unchanged unless *environment*
    is requested explicitly.
    """
    if environment is None:
        environment = data.get(DEFAULT_ENVIRONMENT_KEY)
        if environment is None:
            return data
    section = data.get(environment)
    if not isinstance(section, dict):
        available = sorted(k for k, v in data.items() if isinstance(v, dict))
        msg = f"Environment '{environment}' not found (available: {available})"
        raise InvalidConfig(msg)
    return section


def load_raw_config(
    path: str | Path, environment: str | None = None
) -> dict[str, Any]:
    """Load the raw (unresolved) configuration record for one environment."""
    data = select_environment(load_yaml(path), environment)
    return cast(dict[str, Any], resolve_env_vars(data))


def load_provisioning_config(
    path: str | Path,
    environment: str | None = None,
) -> ProvisioningConfig:
    """Load a config YAML, merge it over built-in defaults and resolve it."""
    raw = load_raw_config(path, environment)
    merged = merge_configs(load_defaults("provision"), raw)
    return resolve(merged)
