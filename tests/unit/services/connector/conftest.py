"""Shared fixtures and helpers for services.connector test package."""

from __future__ import annotations

import datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from newsbridge.core.exceptions import LedgerError
from newsbridge.core.throttle import DeliveryThrottle
from newsbridge.core.watermark import Watermark
from newsbridge.services.connector import Connector, ConnectorConfig


class FakeLedger:
    """In-memory stand-in for DuplicateLedger that records every call."""

    def __init__(self) -> None:
        self.seen: set[str] = set()
        self.checked: list[str] = []
        self.marked: list[str] = []
        self.fail_mark = False
        self.fail_connect = False
        self.entered = False
        self.closed = False

    async def has_seen(self, article_id: str) -> bool:
        self.checked.append(article_id)
        return article_id in self.seen

    async def mark_seen(self, article_id: str) -> None:
        if self.fail_mark:
            raise LedgerError(f"mark {article_id} as posted: connection reset")
        self.seen.add(article_id)
        self.marked.append(article_id)

    async def clear(self, article_id: str) -> None:
        self.seen.discard(article_id)

    async def __aenter__(self) -> FakeLedger:
        if self.fail_connect:
            raise LedgerError("redis connection: Connection refused")
        self.entered = True
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.closed = True


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def source() -> MagicMock:
    """SourceQuery mock; ``find`` returns no articles unless reconfigured."""
    mock = MagicMock()
    mock.find = AsyncMock(return_value=[])
    mock.__aexit__ = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def publisher() -> MagicMock:
    """Publisher mock returning sequential node ids."""
    mock = MagicMock()
    counter = iter(range(1, 1000))
    mock.send = AsyncMock(side_effect=lambda *args, **kwargs: f"node-{next(counter)}")
    mock.__aexit__ = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def initial_mark(now: datetime.datetime) -> datetime.datetime:
    return now - datetime.timedelta(hours=24)


@pytest.fixture
def make_connector(
    source: MagicMock,
    publisher: MagicMock,
    ledger: FakeLedger,
    initial_mark: datetime.datetime,
    config_dict: dict[str, Any],
):
    """Factory building a Connector wired to the mocks, with config overrides."""

    def factory(**overrides: Any) -> Connector:
        data = {**config_dict, **overrides}
        return Connector(
            ConnectorConfig(**data),
            source=source,
            publisher=publisher,
            ledger=ledger,  # type: ignore[arg-type]
            throttle=DeliveryThrottle(1000),
            watermark=Watermark(initial_mark),
        )

    return factory


@pytest.fixture
def connector(make_connector) -> Connector:
    return make_connector()
