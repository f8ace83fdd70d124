"""Frozen dataclasses for configuration and YAML loader with env-var interpolation."""

from __future__ import annotations

import os
import re
import types
import typing
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")

HostInput = str | list | dict | None


def _interpolate_env(value: str) -> str:
    """Replace ${ENV_VAR} placeholders with environment variable values."""

    def _replace(match: re.Match) -> str:
        env_key = match.group(1)
        env_val = os.environ.get(env_key)
        if env_val is None:
            raise ConfigError(f"Environment variable '{env_key}' is not set")
        return env_val

    return _ENV_PATTERN.sub(_replace, value)


def _walk_and_interpolate(obj: Any) -> Any:
    """Recursively interpolate env vars in strings throughout a nested structure."""
    if isinstance(obj, str):
        return _interpolate_env(obj)
    if isinstance(obj, dict):
        return {k: _walk_and_interpolate(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_interpolate(v) for v in obj]
    return obj


@dataclass(frozen=True)
class TopologyConfig:
    primary_host: str = ""
    compiler_pool_address: str = ""
    # Each optional host may be a name, a {name: ...} mapping, or a list of zero or one of those
    replica_host: HostInput = None
    database_host: HostInput = None
    database_replica_host: HostInput = None


@dataclass(frozen=True)
class ClassifierConfig:
    base_url: str = ""
    api_version: str = "v1"
    token: str = ""  # RBAC token, sent as X-Authentication
    cert: str = ""
    key: str = ""
    cacert: str = ""  # CA bundle; empty falls back to verify_ssl
    timeout: int = 10
    verify_ssl: bool = True
    environment: str = "production"


@dataclass(frozen=True)
class NamingConfig:
    role_extension: str = "1.3.6.1.4.1.34380.1.1.9812"
    availability_group_extension: str = "1.3.6.1.4.1.34380.1.1.9813"
    role_namespace: str = "puppet"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "json"  # "json" or "text"


@dataclass(frozen=True)
class AppConfig:
    topology: TopologyConfig = field(default_factory=TopologyConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    naming: NamingConfig = field(default_factory=NamingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _get_dataclass_type(ft: Any) -> type | None:
    """Return the underlying dataclass type from a type annotation (handles Optional/X|None)."""
    if isinstance(ft, type) and hasattr(ft, "__dataclass_fields__"):
        return ft
    if isinstance(ft, types.UnionType):
        args = [a for a in ft.__args__ if a is not type(None)]
        if len(args) == 1 and isinstance(args[0], type) and hasattr(args[0], "__dataclass_fields__"):
            return args[0]
    origin = getattr(ft, "__origin__", None)
    if origin is typing.Union:
        args = [a for a in ft.__args__ if a is not type(None)]
        if len(args) == 1 and isinstance(args[0], type) and hasattr(args[0], "__dataclass_fields__"):
            return args[0]
    return None


def _build_nested(cls: type, data: dict[str, Any]) -> Any:
    """Construct a frozen dataclass, recursively building nested dataclass fields."""
    if not isinstance(data, dict):
        return data
    field_types = {f.name: f.type for f in cls.__dataclass_fields__.values()}
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key not in field_types:
            continue
        ft = field_types[key]
        # Resolve string annotations to actual types in the module scope
        if isinstance(ft, str):
            ft = eval(ft, globals(), {cls.__name__: cls})  # noqa: S307
        dc_type = _get_dataclass_type(ft)
        if dc_type is not None and isinstance(value, dict):
            kwargs[key] = _build_nested(dc_type, value)
        else:
            kwargs[key] = value
    return cls(**kwargs)


def load_config(path: str | Path, require_classifier: bool = True) -> AppConfig:
    """Load and validate configuration from a YAML file.

    ``require_classifier`` is False for dry runs, which never contact the
    classifier and so do not need its connection settings.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ConfigError("Configuration file must be a YAML mapping")

    raw = _walk_and_interpolate(raw)
    config = _build_nested(AppConfig, raw)
    _validate(config, require_classifier)
    return config


def _validate(config: AppConfig, require_classifier: bool) -> None:
    """Validate configuration values."""
    if not config.topology.primary_host:
        raise ConfigError("topology.primary_host is required")

    if not config.topology.compiler_pool_address:
        raise ConfigError("topology.compiler_pool_address is required")

    if require_classifier and not config.classifier.base_url:
        raise ConfigError("classifier.base_url is required")

    if config.classifier.timeout <= 0:
        raise ConfigError("classifier.timeout must be > 0")

    if bool(config.classifier.cert) != bool(config.classifier.key):
        raise ConfigError("classifier.cert and classifier.key must be set together")

    if not config.naming.role_namespace:
        raise ConfigError("naming.role_namespace is required")

    if config.logging.format not in ("json", "text"):
        raise ConfigError("logging.format must be 'json' or 'text'")
