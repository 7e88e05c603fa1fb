import math
import re

import pytest

from btc_ticker.bitstamp_client import OHLC, ChartTimeframe
from btc_ticker.chart import (
    DOWN_FILL,
    DOWN_STROKE,
    LOADING_TEXT,
    MAX_ENTRIES,
    UP_FILL,
    UP_STROKE,
    PriceHistory,
    build_candles,
    chart_title,
    current_price_line,
    format_axis_time,
    price_text,
    y_bounds,
)
from btc_ticker.config import AppConfig
from btc_ticker.state import BitcoinState, CandleData, TimeInfo, history_from_ohlc

AXIS_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}  \d{2}:\d{2}")


def make_history(rows):
    points = [OHLC(str(ts), str(o), str(h), str(lo), str(c)) for ts, o, h, lo, c in rows]
    return history_from_ohlc(points, strict=True)


@pytest.fixture
def state(tmp_path):
    return BitcoinState(config=AppConfig(), config_path=tmp_path / "config.json")


def test_chart_titles_match_timeframes():
    assert chart_title(ChartTimeframe.HOURS_24) == "BTC Price (24 hours - hourly):"
    assert chart_title(ChartTimeframe.WEEK) == "BTC Price (1 week - 4-hour):"
    assert chart_title(ChartTimeframe.MONTH) == "BTC Price (1 month - daily):"
    assert chart_title(ChartTimeframe.YEAR) == "BTC Price (1 year - daily):"


def test_price_text_loading_for_non_positive_price():
    assert price_text(0.0) == LOADING_TEXT
    assert price_text(-5.0) == "Loading..."


def test_price_text_shows_price_and_sats():
    assert price_text(100_000_000.0) == "$100000000.00 | 1 sats/$"


def test_build_candles_colours_and_positions():
    history = make_history(
        [(1700000000, 10, 15, 5, 12), (1700003600, 12, 13, 8, 9)]
    )
    candles = build_candles(history)
    assert len(candles) == 2
    up, down = candles
    assert up.x == 1700000000.0 and down.x == 1700003600.0
    assert up.rising and up.fill == UP_FILL and up.stroke == UP_STROKE
    assert not down.rising and down.fill == DOWN_FILL and down.stroke == DOWN_STROKE
    for candle in candles:
        assert candle.low <= candle.median <= candle.high
        assert min(candle.open, candle.close) <= candle.median <= max(candle.open, candle.close)
        assert candle.whisker_width == 0.8 and candle.box_width == 2.2


def test_build_candles_flat_candle_is_rising():
    history = make_history([(1700000000, 7, 7, 7, 7)])
    (candle,) = build_candles(history)
    assert candle.rising
    assert candle.median == 7.0


def test_build_candles_skips_unreadable_times():
    good = make_history([(1700000000, 1, 2, 0.5, 1.5)])
    bad = (TimeInfo(1700003600, "x", "not a time"), CandleData(1, 2, 0.5, 1.5))
    assert len(build_candles(good + [bad])) == 1
    assert build_candles([bad] + good) == []
    assert build_candles([]) == []


def test_y_bounds_contain_prices():
    history = make_history(
        [(1700000000, 100, 120, 90, 110), (1700003600, 110, 130, 100, 105)]
    )
    low, high = y_bounds(history)
    assert 0.0 <= low < 90
    assert high > 130
    assert math.isclose(90 - low, high - 130)


def test_y_bounds_never_negative():
    history = make_history([(1700000000, 1, 10, 0, 5)])
    low, high = y_bounds(history)
    assert low == 0.0
    assert high > 10


def test_y_bounds_flat_history():
    history = make_history([(1700000000, 50, 50, 50, 50)])
    assert y_bounds(history) == (50.0, 50.0)


def test_y_bounds_empty_raises():
    with pytest.raises(ValueError):
        y_bounds([])


def test_format_axis_time_shape():
    text = format_axis_time(1700000000.0)
    assert len(text) == 17
    assert AXIS_PATTERN.fullmatch(text) is not None
    assert text[:10] in {"2023-11-14", "2023-11-15"}


def test_format_axis_time_truncates_fraction():
    assert format_axis_time(1700000000.9) == format_axis_time(1700000000.0)


def test_format_axis_time_nan_is_epoch():
    assert format_axis_time(float("nan")) == format_axis_time(0.0)


def test_format_axis_time_fallback_out_of_range():
    assert format_axis_time(1e20) == "100000000000000000000.0"
    assert format_axis_time(float("inf")) == "inf"


def test_current_price_line_spans_history():
    history = make_history(
        [(1700000000, 1, 2, 0.5, 1.5), (1700003600, 1, 2, 0.5, 1.5), (1700007200, 1, 2, 0.5, 1.5)]
    )
    label, points = current_price_line(history, 123.456)
    assert label == "Current Price: $123.46"
    assert points == [(1700000000.0, 123.456), (1700007200.0, 123.456)]


def test_current_price_line_absent():
    history = make_history([(1700000000, 1, 2, 0.5, 1.5)])
    assert current_price_line(history, 0.0) is None
    assert current_price_line([], 100.0) is None


def test_sync_copies_state_history(state):
    history = make_history([(1700000000, 1, 2, 0.5, 1.5)])
    state.historical_data = history
    chart = PriceHistory()
    chart.sync(state)
    assert chart.entries == history
    assert len(chart) == 1


def test_sync_keeps_entries_when_state_empty(state):
    initial = make_history([(1700000000, 1, 2, 0.5, 1.5)])
    chart = PriceHistory(initial)
    chart.sync(state)
    assert chart.entries == initial


def test_sync_appends_new_price_and_resets_flag(state):
    state.historical_data = make_history([(1700000000, 1, 2, 0.5, 1.5)])
    state.price = 42.0
    state.last_updated = "stamp"
    state.new_price_fetched = True
    chart = PriceHistory()
    chart.sync(state)
    assert len(chart) == 2
    info, candle = chart.entries[-1]
    assert candle == CandleData(42.0, 42.0, 42.0, 42.0)
    assert str(info) == "stamp"
    assert state.new_price_fetched is False
    assert len(build_candles(chart.entries)) == 2


def test_sync_caps_history(state):
    rows = [(1700000000 + 3600 * i, 1, 2, 0.5, 1.5) for i in range(MAX_ENTRIES)]
    state.historical_data = make_history(rows)
    state.price = 3.0
    state.new_price_fetched = True
    chart = PriceHistory()
    chart.sync(state)
    assert len(chart) == MAX_ENTRIES
    assert chart.entries[0] == state.historical_data[1]
    assert chart.entries[-1][1].close == 3.0