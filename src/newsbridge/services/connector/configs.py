"""Connector service configuration models.

The YAML layout groups settings per external system (``elasticsearch``,
``drupal``, ``redis``), the sync behaviour under ``service``, and the
``cities`` list. Non-empty environment variables override file values:

=====================  ===========================
Variable               Field
=====================  ===========================
``ES_URL``             ``elasticsearch.url``
``DRUPAL_URL``         ``drupal.url``
``DRUPAL_USERNAME``    ``drupal.username``
``DRUPAL_TOKEN``       ``drupal.token``
``DRUPAL_AUTH_METHOD`` ``drupal.auth_method``
``REDIS_URL``          ``redis.url``
``APP_DEBUG``          ``debug``
``LOG_FORMAT``         ``log_format``
=====================  ===========================

Durations (``interval``, ``service.check_interval``, ``service.dedup_ttl``)
accept seconds as numbers or strings such as ``"5m"``, ``"8760h"`` or
``"1h30m"``.

See Also:
    [Connector][newsbridge.services.connector.Connector]: The service class
        that consumes these configurations.
    [BaseServiceConfig][newsbridge.core.base_service.BaseServiceConfig]:
        Base class providing ``interval``, ``max_consecutive_failures``, and
        ``metrics`` fields.
"""

from __future__ import annotations

import os
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from newsbridge.clients.drupal import DrupalConfig
from newsbridge.clients.search import ElasticsearchConfig
from newsbridge.core.base_service import BaseServiceConfig
from newsbridge.core.ledger import RedisConfig
from newsbridge.models.constants import DEFAULT_CRIME_KEYWORDS, DEFAULT_DEDUP_TTL_SECONDS


#: Environment variable -> (section, field) overrides applied before validation.
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "ES_URL": ("elasticsearch", "url"),
    "DRUPAL_URL": ("drupal", "url"),
    "DRUPAL_USERNAME": ("drupal", "username"),
    "DRUPAL_TOKEN": ("drupal", "token"),
    "DRUPAL_AUTH_METHOD": ("drupal", "auth_method"),
    "REDIS_URL": ("redis", "url"),
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any) -> Any:
    """Convert a duration string like ``"5m"`` or ``"1h30m"`` to seconds.

    Numbers pass through unchanged, as does anything unparseable (so the
    field validator reports it).
    """
    if not isinstance(value, str):
        return value
    text = value.strip()
    try:
        return float(text)
    except ValueError:
        pass
    parts = _DURATION_PART.findall(text)
    if not parts or "".join(n + u for n, u in parts) != text:
        return value
    return sum(float(n) * _DURATION_UNITS[u] for n, u in parts)


def parse_bool(value: str) -> bool:
    """Return True for ``"true"``, ``"1"`` or ``"yes"`` (any case), else False."""
    return value.strip().lower() in ("true", "1", "yes")


class CityConfig(BaseModel):
    """One city: an index to search and a Drupal group to publish into.

    Attributes:
        name: Unique city name; also the default index prefix.
        index: Explicit Elasticsearch index, overriding ``<name>_articles``.
        group_id: UUID of the city's Drupal group.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Unique city name")
    index: str | None = Field(default=None, description="Index override")
    group_id: str = Field(min_length=1, description="Drupal group UUID")

    @property
    def index_name(self) -> str:
        """The index searched for this city."""
        return self.index or f"{self.name}_articles"


class SyncConfig(BaseModel):
    """Behaviour of one sync pass: filtering, windowing, pacing, and labels."""

    rate_limit_rps: float = Field(default=10.0, gt=0.0, description="Deliveries per second")
    burst: int | None = Field(
        default=None, ge=1, description="Token bucket size (default: rate_limit_rps)"
    )
    lookback_hours: int = Field(
        default=0, ge=0, description="Time window in hours (0 = search the whole index)"
    )
    result_size: int = Field(default=100, ge=1, le=10_000, description="Hits per search")
    crime_keywords: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CRIME_KEYWORDS),
        description="Relevance keywords (empty = built-in defaults)",
    )
    content_type: str = Field(default="node--article", min_length=1)
    group_type: str = Field(default="group--crime_news", min_length=1)
    dedup_ttl: int = Field(
        default=DEFAULT_DEDUP_TTL_SECONDS,
        ge=0,
        description="Ledger entry lifetime in seconds (0 = one year)",
    )

    @field_validator("dedup_ttl", mode="before")
    @classmethod
    def _parse_ttl(cls, v: Any) -> Any:
        v = parse_duration(v)
        if isinstance(v, float) and v >= 0:
            return int(v)
        return v

    @field_validator("dedup_ttl", mode="after")
    @classmethod
    def _default_ttl(cls, v: int) -> int:
        return v or DEFAULT_DEDUP_TTL_SECONDS

    @field_validator("crime_keywords", mode="after")
    @classmethod
    def _default_keywords(cls, v: list[str]) -> list[str]:
        keywords = [k.strip() for k in v if k and k.strip()]
        return keywords or list(DEFAULT_CRIME_KEYWORDS)


class ConnectorConfig(BaseServiceConfig):
    """Connector service configuration.

    See Also:
        [Connector][newsbridge.services.connector.Connector]: The service
            class that consumes this configuration.
    """

    debug: bool = Field(default=False, description="Debug logging")
    log_format: Literal["text", "json"] | None = Field(
        default=None,
        description="Log output format (default: text when debug, json otherwise)",
    )
    elasticsearch: ElasticsearchConfig
    drupal: DrupalConfig
    redis: RedisConfig
    service: SyncConfig = Field(default_factory=SyncConfig)
    cities: list[CityConfig] = Field(min_length=1, description="Cities to sync, in order")

    @model_validator(mode="before")
    @classmethod
    def _apply_environment(cls, data: Any) -> Any:
        """Apply env overrides and lift ``service.check_interval`` to ``interval``."""
        if not isinstance(data, dict):
            return data
        data = dict(data)

        for env_var, (section, key) in ENV_OVERRIDES.items():
            value = os.getenv(env_var)
            if value:
                current = data.get(section)
                merged = dict(current) if isinstance(current, dict) else {}
                merged[key] = value
                data[section] = merged

        app_debug = os.getenv("APP_DEBUG")
        if app_debug:
            data["debug"] = parse_bool(app_debug)

        log_format = os.getenv("LOG_FORMAT")
        if log_format:
            data["log_format"] = log_format.strip().lower()

        service = data.get("service")
        if isinstance(service, dict) and "check_interval" in service:
            service = dict(service)
            check_interval = service.pop("check_interval")
            data["service"] = service
            data.setdefault("interval", check_interval)

        if "interval" in data:
            data["interval"] = parse_duration(data["interval"])
        return data

    @field_validator("cities", mode="after")
    @classmethod
    def _unique_city_names(cls, v: list[CityConfig]) -> list[CityConfig]:
        seen: set[str] = set()
        duplicates = []
        for city in v:
            if city.name in seen:
                duplicates.append(city.name)
            seen.add(city.name)
        if duplicates:
            raise ValueError(f"duplicate city names: {', '.join(sorted(set(duplicates)))}")
        return v
