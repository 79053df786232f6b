"""Unit tests for models.constants module."""

from newsbridge.models.constants import (
    DEFAULT_CRIME_KEYWORDS,
    DEFAULT_DEDUP_TTL_SECONDS,
    LEDGER_KEY_PREFIX,
    ServiceName,
)


class TestServiceName:
    def test_connector_value(self) -> None:
        assert ServiceName.CONNECTOR == "connector"

    def test_is_str(self) -> None:
        assert isinstance(ServiceName.CONNECTOR, str)
        assert f"{ServiceName.CONNECTOR}" == "connector"


class TestConstants:
    def test_ledger_prefix(self) -> None:
        assert LEDGER_KEY_PREFIX == "posted:article:"

    def test_default_ttl_is_one_year(self) -> None:
        assert DEFAULT_DEDUP_TTL_SECONDS == 31_536_000

    def test_default_keywords_lowercase_and_unique(self) -> None:
        assert all(k == k.lower() for k in DEFAULT_CRIME_KEYWORDS)
        assert len(set(DEFAULT_CRIME_KEYWORDS)) == len(DEFAULT_CRIME_KEYWORDS)
        assert "police" in DEFAULT_CRIME_KEYWORDS
