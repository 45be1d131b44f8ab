"""Shared fixtures: synthetic kline sequences."""
import pytest

from tests.helpers import W_SCENARIO, build_candles


@pytest.fixture
def w_candles():
    return build_candles(W_SCENARIO)


@pytest.fixture
def candle_builder():
    return build_candles
