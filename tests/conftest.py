"""
Pytest configuration and shared fixtures for newsbridge tests.

Provides:
- Environment isolation from the connector's override variables
- Sample city, article, and configuration fixtures
- A factory for mocked aiohttp responses
"""

from __future__ import annotations

import datetime
import json
import logging
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from newsbridge.models import Article
from newsbridge.services.connector.configs import ENV_OVERRIDES, CityConfig, ConnectorConfig


# ============================================================================
# Logging / Environment
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove environment overrides so host settings never leak into configs."""
    for name in (*ENV_OVERRIDES, "APP_DEBUG", "LOG_FORMAT", "CONFIG_PATH"):
        monkeypatch.delenv(name, raising=False)


# ============================================================================
# Sample Data
# ============================================================================


@pytest.fixture
def now() -> datetime.datetime:
    return datetime.datetime(2026, 3, 14, 12, 0, tzinfo=datetime.UTC)


@pytest.fixture
def city() -> CityConfig:
    return CityConfig(name="sudbury", group_id="0d7c5e2a-5b8e-4a43-9f6f-7f7f2b1c9a01")


@pytest.fixture
def relevant_article(now: datetime.datetime) -> Article:
    return Article(
        id="article-a",
        title="Police arrest suspect downtown",
        body="Officers detained a man on Elm Street.",
        url="https://news.example.org/a",
        published_at=now - datetime.timedelta(hours=1),
        source="sudbury.com",
    )


@pytest.fixture
def irrelevant_article(now: datetime.datetime) -> Article:
    return Article(
        id="article-b",
        title="City council meeting",
        body="Budget talks continue.",
        url="https://news.example.org/b",
        published_at=now - datetime.timedelta(hours=1),
        source="sudbury.com",
    )


@pytest.fixture
def config_dict() -> dict[str, Any]:
    """Minimal valid connector configuration as parsed from YAML."""
    return {
        "elasticsearch": {"url": "http://es:9200"},
        "drupal": {"url": "https://drupal.example.org", "username": "bot", "token": "s3cret"},
        "redis": {"url": "redis:6379"},
        "service": {"crime_keywords": ["arrest", "police"], "lookback_hours": 24},
        "cities": [{"name": "sudbury", "group_id": "0d7c5e2a-5b8e-4a43-9f6f-7f7f2b1c9a01"}],
    }


@pytest.fixture
def connector_config(config_dict: dict[str, Any]) -> ConnectorConfig:
    return ConnectorConfig(**config_dict)


# ============================================================================
# aiohttp Mocks
# ============================================================================


def _encode(body: Any) -> bytes:
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body).encode("utf-8")


@pytest.fixture
def make_response() -> Callable[..., MagicMock]:
    """Factory for ``async with session.get/post(...)`` context managers.

    The returned context manager yields a response whose ``content.read``
    serves ``body`` (bytes, str, or JSON-serializable) followed by EOF.
    """

    def factory(status: int = 200, body: Any = b"", reason: str = "OK") -> MagicMock:
        raw = _encode(body)
        response = MagicMock()
        response.status = status
        response.reason = reason
        response.content.read = AsyncMock(side_effect=[raw, b""] if raw else [b""])

        ctx = MagicMock()
        ctx.__aenter__ = AsyncMock(return_value=response)
        ctx.__aexit__ = AsyncMock(return_value=None)
        ctx.response = response
        return ctx

    return factory
