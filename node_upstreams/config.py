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

PROVIDERS = ("gcp", "aws", "azure")


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
class DiscoveryConfig:
    provider: str = "gcp"  # "gcp", "aws" or "azure"
    node_name_prefix: str = ""  # empty = match all instances
    running_only: bool = True


@dataclass(frozen=True)
class GCPConfig:
    project_id: str = ""  # empty = project of the application default credentials


@dataclass(frozen=True)
class AWSConfig:
    region: str = ""
    credential_profile: str = ""  # empty = use default boto3 credential chain


@dataclass(frozen=True)
class AzureConfig:
    subscription_id: str = ""
    resource_groups: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class UpstreamsConfig:
    port: int = 30080
    freshness_seconds: float = 60
    retry_backoff_seconds: float = 60
    debounce: bool = True
    debounce_seconds: float = 300


@dataclass(frozen=True)
class WatchConfig:
    interval_seconds: float = 10


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "json"  # "json" or "text"


@dataclass(frozen=True)
class AppConfig:
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    gcp: GCPConfig = field(default_factory=GCPConfig)
    aws: AWSConfig = field(default_factory=AWSConfig)
    azure: AzureConfig = field(default_factory=AzureConfig)
    upstreams: UpstreamsConfig = field(default_factory=UpstreamsConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
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


def _build_nested(cls: type, data: dict[str, Any], path: str = "") -> Any:
    """Construct a frozen dataclass, recursively building nested dataclass fields.

    Keys that do not name a field are rejected rather than ignored, so a typo
    such as ``node_prefix`` fails loudly instead of silently matching everything.
    """
    if not isinstance(data, dict):
        return data
    field_types = {f.name: f.type for f in cls.__dataclass_fields__.values()}
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key not in field_types:
            raise ConfigError(f"Unrecognized configuration option '{path}{key}'")
        ft = field_types[key]
        # Resolve string annotations to actual types in the module scope
        if isinstance(ft, str):
            ft = eval(ft, globals(), {cls.__name__: cls})  # noqa: S307
        dc_type = _get_dataclass_type(ft)
        if dc_type is not None:
            if value is None:
                continue
            if not isinstance(value, dict):
                raise ConfigError(f"'{path}{key}' must be a mapping")
            kwargs[key] = _build_nested(dc_type, value, f"{path}{key}.")
        else:
            kwargs[key] = value
    return cls(**kwargs)


def load_config(path: str | Path) -> AppConfig:
    """Load and validate configuration from a YAML file."""
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}")

    with open(path) as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Configuration file is not valid YAML: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError("Configuration file must be a YAML mapping")

    raw = _walk_and_interpolate(raw)
    config = _build_nested(AppConfig, raw)
    validate(config)
    return config


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_types(config: AppConfig) -> None:
    """Reject values YAML parsed as the wrong type, e.g. a quoted '60' or 'false'."""
    for name, value in (
        ("discovery.running_only", config.discovery.running_only),
        ("upstreams.debounce", config.upstreams.debounce),
    ):
        if not isinstance(value, bool):
            raise ConfigError(f"{name} must be true or false, got {value!r}")

    for name, value in (
        ("upstreams.freshness_seconds", config.upstreams.freshness_seconds),
        ("upstreams.retry_backoff_seconds", config.upstreams.retry_backoff_seconds),
        ("upstreams.debounce_seconds", config.upstreams.debounce_seconds),
        ("watch.interval_seconds", config.watch.interval_seconds),
    ):
        if not _is_number(value):
            raise ConfigError(f"{name} must be a number of seconds, got {value!r}")


def validate(config: AppConfig) -> None:
    """Validate configuration values."""
    _check_types(config)

    provider = config.discovery.provider
    if provider not in PROVIDERS:
        raise ConfigError(f"discovery.provider must be one of {', '.join(PROVIDERS)}")

    if not isinstance(config.discovery.node_name_prefix, str):
        raise ConfigError("discovery.node_name_prefix must be a string")

    if provider == "aws" and not config.aws.region:
        raise ConfigError("aws.region is required when discovery.provider is 'aws'")

    if provider == "azure" and not config.azure.subscription_id:
        raise ConfigError("azure.subscription_id is required when discovery.provider is 'azure'")

    port = config.upstreams.port
    if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
        raise ConfigError("upstreams.port must be an integer between 1 and 65535")

    if config.upstreams.freshness_seconds <= 0:
        raise ConfigError("upstreams.freshness_seconds must be > 0")

    if config.upstreams.retry_backoff_seconds <= 0:
        raise ConfigError("upstreams.retry_backoff_seconds must be > 0")

    if config.upstreams.debounce_seconds < 0:
        raise ConfigError("upstreams.debounce_seconds must be >= 0")

    if config.watch.interval_seconds < 1:
        raise ConfigError("watch.interval_seconds must be >= 1")

    if config.logging.format not in ("json", "text"):
        raise ConfigError("logging.format must be 'json' or 'text'")
