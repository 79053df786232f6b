"""Unit tests for core.watermark module."""

import datetime

import pytest

from newsbridge.core.watermark import Watermark


NOON = datetime.datetime(2026, 3, 14, 12, 0, tzinfo=datetime.UTC)


class TestInit:
    """Watermark construction."""

    def test_initial_value(self) -> None:
        assert Watermark(NOON).get() == NOON

    def test_naive_rejected(self) -> None:
        with pytest.raises(ValueError, match="timezone-aware"):
            Watermark(datetime.datetime(2026, 3, 14, 12, 0))

    def test_from_lookback(self) -> None:
        mark = Watermark.from_lookback(datetime.timedelta(hours=24), now=NOON)
        assert mark.get() == datetime.datetime(2026, 3, 13, 12, 0, tzinfo=datetime.UTC)

    def test_from_zero_lookback(self) -> None:
        assert Watermark.from_lookback(datetime.timedelta(0), now=NOON).get() == NOON

    def test_from_lookback_defaults_to_now(self) -> None:
        before = datetime.datetime.now(datetime.UTC)
        mark = Watermark.from_lookback(datetime.timedelta(hours=1))
        assert before - datetime.timedelta(hours=1) <= mark.get()


class TestAdvance:
    """advance() never moves the watermark backwards."""

    def test_forward(self) -> None:
        mark = Watermark(NOON)
        later = NOON + datetime.timedelta(minutes=5)
        assert mark.advance(later) == later
        assert mark.get() == later

    def test_backward_ignored(self) -> None:
        mark = Watermark(NOON)
        assert mark.advance(NOON - datetime.timedelta(hours=1)) == NOON
        assert mark.get() == NOON

    def test_default_is_now(self) -> None:
        mark = Watermark(NOON - datetime.timedelta(days=1))
        before = datetime.datetime.now(datetime.UTC)
        assert mark.advance() >= before

    def test_naive_rejected(self) -> None:
        with pytest.raises(ValueError, match="timezone-aware"):
            Watermark(NOON).advance(datetime.datetime(2026, 3, 15))

    def test_sequence_is_non_decreasing(self) -> None:
        mark = Watermark(NOON)
        offsets = [5, -3, 10, 0, 7]
        seen = []
        for minutes in offsets:
            seen.append(mark.advance(NOON + datetime.timedelta(minutes=minutes)))
        assert seen == sorted(seen)
        assert mark.get() == NOON + datetime.timedelta(minutes=10)
