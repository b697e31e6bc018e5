"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    ValidationError,
    field_validator,
    model_validator,
)

from quote_resolver.core.exceptions import ConfigError
from quote_resolver.core.models import TtlClass

_DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; quote-resolver/0.1)"


class ProvidersConfig(BaseModel):
    """Upstream market-data and FX provider access."""

    model_config = ConfigDict(frozen=True)

    request_timeout: float = 1.5
    rate_limit: int = 20
    user_agent: str = _DEFAULT_USER_AGENT
    stooq_hosts: tuple[str, ...] = (
        "https://stooq.com",
        "https://stooq.pl",
        "http://stooq.com",
        "http://stooq.pl",
    )
    yahoo_hosts: tuple[str, ...] = (
        "https://query1.finance.yahoo.com",
        "https://query2.finance.yahoo.com",
    )
    finnhub_base_url: str = "https://finnhub.io/api/v1"
    finnhub_api_key: str | None = None
    nbp_base_url: str = "https://api.nbp.pl"
    frankfurter_base_url: str = "https://api.frankfurter.app"

    @field_validator("request_timeout")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout must be > 0")
        return v

    @field_validator("rate_limit")
    @classmethod
    def rate_limit_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("rate_limit must be >= 1")
        return v

    @field_validator("stooq_hosts", "yahoo_hosts", mode="before")
    @classmethod
    def split_host_list(cls, v: Any) -> Any:
        """Accept ``"https://a, https://b"`` as given in an environment variable."""
        if isinstance(v, str):
            return tuple(h.strip() for h in v.split(",") if h.strip())
        return v

    @field_validator("stooq_hosts", "yahoo_hosts")
    @classmethod
    def hosts_not_empty(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("at least one host is required")
        return tuple(h.rstrip("/") for h in v)


class CacheConfig(BaseModel):
    """TTL classes and bounds of the resolution cache."""

    model_config = ConfigDict(frozen=True)

    quote_ttl: int = 60
    short_ttl: int = 15 * 60
    eod_ttl: int = 24 * 60 * 60
    negative_ttl: int = 30
    max_stale_seconds: int = 7 * 24 * 60 * 60
    max_entries: int = 10_000

    @model_validator(mode="after")
    def ttls_positive(self) -> CacheConfig:
        for name in ("quote_ttl", "short_ttl", "eod_ttl", "max_entries"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")
        if self.negative_ttl < 0:
            raise ValueError("negative_ttl must be >= 0")
        return self

    def ttl_for(self, ttl_class: TtlClass) -> int:
        """Seconds a value of the given class stays fresh."""
        return {
            TtlClass.QUOTE: self.quote_ttl,
            TtlClass.SHORT: self.short_ttl,
            TtlClass.EOD: self.eod_ttl,
        }[ttl_class]


class FxConfig(BaseModel):
    """FX conversion settings."""

    model_config = ConfigDict(frozen=True)

    backfill_days: int = 7

    @field_validator("backfill_days")
    @classmethod
    def backfill_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("backfill_days must be >= 0")
        return v


class BatchConfig(BaseModel):
    """Batch fan-out settings."""

    model_config = ConfigDict(frozen=True)

    concurrency: int = 6

    @field_validator("concurrency")
    @classmethod
    def concurrency_bounded(cls, v: int) -> int:
        if v < 1 or v > 64:
            raise ValueError("concurrency must be between 1 and 64")
        return v


class ResolverConfig(BaseModel):
    """Root configuration for the whole engine."""

    model_config = ConfigDict(frozen=True)

    providers: ProvidersConfig = ProvidersConfig()
    cache: CacheConfig = CacheConfig()
    fx: FxConfig = FxConfig()
    batch: BatchConfig = BatchConfig()


CONFIG_ENV_VAR = "QUOTE_RESOLVER_CONFIG"
DEFAULT_CONFIG_FILE = "quote-resolver.yml"


def load_config(
    config_path: str | None = None,
    env_prefix: str = "QUOTE_RESOLVER_",
) -> ResolverConfig:
    """Build the engine configuration from defaults, a YAML file and the environment.

    Later layers win: built-in defaults, then the YAML file, then
    ``<env_prefix>SECTION__FIELD`` variables, so
    ``QUOTE_RESOLVER_CACHE__QUOTE_TTL=30`` sets ``cache.quote_ttl``.

    The YAML file is ``config_path`` if given, else ``$QUOTE_RESOLVER_CONFIG``,
    else ``./quote-resolver.yml`` when present.

    Raises
    ------
    ConfigError
        A named file is missing or unparsable, or a value fails validation.
    """
    path = _config_file(config_path)
    data = _read_yaml(path) if path is not None else {}
    merged = _deep_merge(data, _env_overrides(env_prefix))
    try:
        return ResolverConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid configuration: {e}",
            context={"source": "load_config", "file": str(path) if path else None},
        ) from e


def _config_file(explicit: str | None) -> Path | None:
    candidates = (
        ("config_path", explicit),
        (CONFIG_ENV_VAR, os.environ.get(CONFIG_ENV_VAR)),
    )
    for field, value in candidates:
        if not value:
            continue
        path = Path(value)
        if not path.is_file():
            raise ConfigError(
                f"Config file from {field} not found: {value}",
                context={"field": field, "value": value},
            )
        return path

    default = Path(DEFAULT_CONFIG_FILE)
    return default if default.is_file() else None


def _read_yaml(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"YAML config must be a mapping, got {type(data).__name__}",
            context={"field": "config_file", "value": str(path)},
        )
    return data


def _env_overrides(prefix: str) -> dict:
    """Nested overrides from ``<prefix>SECTION__FIELD`` variables."""
    overrides: dict = {}
    for key, value in os.environ.items():
        if not key.startswith(prefix) or key == f"{prefix}CONFIG":
            continue
        *sections, field = key[len(prefix) :].lower().split("__")
        node = overrides
        for section in sections:
            child = node.get(section)
            if not isinstance(child, dict):
                child = node[section] = {}
            node = child
        node[field] = _scalar(value)
    return overrides


def _deep_merge(base: dict, overrides: dict) -> dict:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _scalar(value: str) -> str | int | float | bool:
    """Cast an environment string to bool, int or float where it reads as one."""
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            pass
    return value
