"""
Unit tests for services.connector.configs module.

Tests:
- parse_duration() / parse_bool() helpers
- CityConfig index defaults
- SyncConfig defaults, keyword and TTL normalization
- ConnectorConfig environment overrides, interval lifting, city validation
"""

from typing import Any

import pytest
from pydantic import ValidationError

from newsbridge.models.constants import DEFAULT_CRIME_KEYWORDS, DEFAULT_DEDUP_TTL_SECONDS
from newsbridge.services.connector import CityConfig, ConnectorConfig, SyncConfig
from newsbridge.services.connector.configs import parse_bool, parse_duration


# ============================================================================
# Helpers
# ============================================================================


class TestParseDuration:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("5m", 300.0),
            ("8760h", 31_536_000.0),
            ("1h30m", 5400.0),
            ("500ms", 0.5),
            ("90s", 90.0),
            ("1.5h", 5400.0),
            ("120", 120.0),
            (" 60 ", 60.0),
            (45, 45),
            (2.5, 2.5),
        ],
    )
    def test_parses(self, value: Any, expected: Any) -> None:
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["5 minutes", "m5", "1d", "5mx"])
    def test_unparseable_returned_unchanged(self, value: str) -> None:
        assert parse_duration(value) == value


class TestParseBool:
    @pytest.mark.parametrize("value", ["true", "TRUE", "1", "yes", " Yes "])
    def test_truthy(self, value: str) -> None:
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", ["false", "0", "no", "on", ""])
    def test_falsy(self, value: str) -> None:
        assert parse_bool(value) is False


# ============================================================================
# CityConfig
# ============================================================================


class TestCityConfig:
    def test_default_index(self) -> None:
        assert CityConfig(name="sudbury", group_id="g").index_name == "sudbury_articles"

    def test_explicit_index(self) -> None:
        city = CityConfig(name="timmins", index="timmins_news", group_id="g")
        assert city.index_name == "timmins_news"

    @pytest.mark.parametrize("field", ["name", "group_id"])
    def test_required_non_empty(self, field: str) -> None:
        data = {"name": "sudbury", "group_id": "g", field: ""}
        with pytest.raises(ValidationError):
            CityConfig(**data)

    def test_frozen(self) -> None:
        city = CityConfig(name="sudbury", group_id="g")
        with pytest.raises(ValidationError):
            city.name = "other"  # type: ignore[misc]


# ============================================================================
# SyncConfig
# ============================================================================


class TestSyncConfig:
    def test_defaults(self) -> None:
        config = SyncConfig()
        assert config.rate_limit_rps == 10.0
        assert config.burst is None
        assert config.lookback_hours == 0
        assert config.result_size == 100
        assert config.crime_keywords == list(DEFAULT_CRIME_KEYWORDS)
        assert config.content_type == "node--article"
        assert config.group_type == "group--crime_news"
        assert config.dedup_ttl == DEFAULT_DEDUP_TTL_SECONDS

    @pytest.mark.parametrize("keywords", [[], ["", "  "]])
    def test_empty_keywords_fall_back_to_defaults(self, keywords: list[str]) -> None:
        assert SyncConfig(crime_keywords=keywords).crime_keywords == list(DEFAULT_CRIME_KEYWORDS)

    def test_keywords_stripped(self) -> None:
        assert SyncConfig(crime_keywords=[" arrest ", "", "Police"]).crime_keywords == [
            "arrest",
            "Police",
        ]

    @pytest.mark.parametrize(
        ("ttl", "expected"),
        [("8760h", 31_536_000), ("30m", 1800), (600, 600), (0, DEFAULT_DEDUP_TTL_SECONDS)],
    )
    def test_dedup_ttl(self, ttl: Any, expected: int) -> None:
        assert SyncConfig(dedup_ttl=ttl).dedup_ttl == expected

    def test_dedup_ttl_invalid(self) -> None:
        with pytest.raises(ValidationError):
            SyncConfig(dedup_ttl="forever")

    @pytest.mark.parametrize(
        ("field", "value"),
        [("rate_limit_rps", 0), ("burst", 0), ("lookback_hours", -1), ("result_size", 10_001)],
    )
    def test_bounds(self, field: str, value: Any) -> None:
        with pytest.raises(ValidationError):
            SyncConfig(**{field: value})


# ============================================================================
# ConnectorConfig
# ============================================================================


class TestConnectorConfig:
    """Full configuration validation."""

    def test_from_dict(self, config_dict: dict[str, Any]) -> None:
        config = ConnectorConfig(**config_dict)
        assert config.debug is False
        assert config.elasticsearch.url == "http://es:9200"
        assert config.drupal.token.get_secret_value() == "s3cret"
        assert config.redis.connection_url() == "redis://redis:6379"
        assert config.service.lookback_hours == 24
        assert [c.name for c in config.cities] == ["sudbury"]
        assert config.interval == 300.0

    @pytest.mark.parametrize("section", ["elasticsearch", "drupal", "redis", "cities"])
    def test_required_sections(self, config_dict: dict[str, Any], section: str) -> None:
        del config_dict[section]
        with pytest.raises(ValidationError):
            ConnectorConfig(**config_dict)

    def test_no_cities_rejected(self, config_dict: dict[str, Any]) -> None:
        config_dict["cities"] = []
        with pytest.raises(ValidationError):
            ConnectorConfig(**config_dict)

    def test_duplicate_city_names_rejected(self, config_dict: dict[str, Any]) -> None:
        config_dict["cities"] = [
            {"name": "sudbury", "group_id": "g-1"},
            {"name": "timmins", "group_id": "g-2"},
            {"name": "sudbury", "group_id": "g-3"},
        ]
        with pytest.raises(ValidationError, match="duplicate city names: sudbury"):
            ConnectorConfig(**config_dict)

    def test_city_order_preserved(self, config_dict: dict[str, Any]) -> None:
        config_dict["cities"] = [
            {"name": name, "group_id": f"g-{name}"} for name in ("timmins", "sudbury", "north_bay")
        ]
        config = ConnectorConfig(**config_dict)
        assert [c.name for c in config.cities] == ["timmins", "sudbury", "north_bay"]

    def test_interval_duration_string(self, config_dict: dict[str, Any]) -> None:
        config_dict["interval"] = "5m"
        assert ConnectorConfig(**config_dict).interval == 300.0

    def test_check_interval_lifted(self, config_dict: dict[str, Any]) -> None:
        config_dict["service"] = {"check_interval": "1h"}
        config = ConnectorConfig(**config_dict)
        assert config.interval == 3600.0

    def test_explicit_interval_wins_over_check_interval(
        self, config_dict: dict[str, Any]
    ) -> None:
        config_dict["interval"] = 60
        config_dict["service"] = {"check_interval": "1h"}
        assert ConnectorConfig(**config_dict).interval == 60.0

    def test_input_not_mutated(self, config_dict: dict[str, Any]) -> None:
        config_dict["service"] = {"check_interval": "1h"}
        ConnectorConfig(**config_dict)
        assert config_dict["service"] == {"check_interval": "1h"}


class TestEnvironmentOverrides:
    """Non-empty environment variables replace file values."""

    def test_overrides(self, config_dict: dict[str, Any], monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ES_URL", "http://es-prod:9200")
        monkeypatch.setenv("DRUPAL_URL", "https://cms.example.org")
        monkeypatch.setenv("DRUPAL_USERNAME", "svc")
        monkeypatch.setenv("DRUPAL_TOKEN", "env-token")
        monkeypatch.setenv("DRUPAL_AUTH_METHOD", "key_auth")
        monkeypatch.setenv("REDIS_URL", "redis://cache:6380")

        config = ConnectorConfig(**config_dict)

        assert config.elasticsearch.url == "http://es-prod:9200"
        assert config.drupal.url == "https://cms.example.org"
        assert config.drupal.username == "svc"
        assert config.drupal.token.get_secret_value() == "env-token"
        assert config.drupal.auth_method == "key_auth"
        assert config.redis.url == "redis://cache:6380"

    def test_empty_variable_ignored(
        self, config_dict: dict[str, Any], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ES_URL", "")
        assert ConnectorConfig(**config_dict).elasticsearch.url == "http://es:9200"

    def test_fills_missing_section(
        self, config_dict: dict[str, Any], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        del config_dict["redis"]
        monkeypatch.setenv("REDIS_URL", "redis:6379")
        assert ConnectorConfig(**config_dict).redis.url == "redis:6379"

    @pytest.mark.parametrize(("value", "expected"), [("true", True), ("1", True), ("no", False)])
    def test_app_debug(
        self,
        config_dict: dict[str, Any],
        monkeypatch: pytest.MonkeyPatch,
        value: str,
        expected: bool,
    ) -> None:
        config_dict["debug"] = not expected
        monkeypatch.setenv("APP_DEBUG", value)
        assert ConnectorConfig(**config_dict).debug is expected

    def test_log_format_env(
        self, config_dict: dict[str, Any], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_dict["log_format"] = "text"
        monkeypatch.setenv("LOG_FORMAT", " JSON ")
        assert ConnectorConfig(**config_dict).log_format == "json"

    def test_log_format_default_unset(self, config_dict: dict[str, Any]) -> None:
        assert ConnectorConfig(**config_dict).log_format is None

    def test_log_format_invalid(self, config_dict: dict[str, Any]) -> None:
        config_dict["log_format"] = "xml"
        with pytest.raises(ValidationError):
            ConnectorConfig(**config_dict)
