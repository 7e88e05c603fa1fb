"""Chart data for the price window: candles, axis bounds, labels and the live history."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from .bitstamp_client import ChartTimeframe
from .state import BitcoinState, CandleData, HistoryEntry, TimeInfo

MAX_ENTRIES = 100
LOADING_TEXT = "Loading..."
SATOSHIS_PER_BTC = 100_000_000.0
PADDING_FRACTION = 0.05

UP_FILL = (0, 200, 0)
UP_STROKE = (0, 255, 0)
DOWN_FILL = (200, 0, 0)
DOWN_STROKE = (255, 0, 0)
PRICE_LINE_COLOR = (255, 140, 0)
PRICE_LINE_WIDTH = 2.0

_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1

_CHART_TITLES = {
    ChartTimeframe.HOURS_24: "BTC Price (24 hours - hourly):",
    ChartTimeframe.WEEK: "BTC Price (1 week - 4-hour):",
    ChartTimeframe.MONTH: "BTC Price (1 month - daily):",
    ChartTimeframe.YEAR: "BTC Price (1 year - daily):",
}

RGB = tuple[int, int, int]


@dataclass(frozen=True)
class Candle:
    """One drawable candlestick: a box from open to close with whiskers to low and high."""

    x: float
    low: float
    open: float
    median: float
    close: float
    high: float
    fill: RGB
    stroke: RGB
    stroke_width: float = 1.5
    whisker_width: float = 0.8
    box_width: float = 2.2

    @property
    def rising(self) -> bool:
        """True when the candle closed at or above its open."""
        return self.close >= self.open


def _parse_rfc3339(text: str) -> datetime | None:
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed


class PriceHistory:
    """The entries shown on the chart, kept in step with the shared state."""

    def __init__(self, entries: Iterable[HistoryEntry] = ()) -> None:
        self.entries: list[HistoryEntry] = list(entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def sync(self, state: BitcoinState) -> None:
        """Take the state's history and append a point for a newly fetched price."""
        with state.lock:
            if state.historical_data:
                self.entries = list(state.historical_data)

            if not state.new_price_fetched:
                return

            price = state.price
            now = datetime.now(timezone.utc)
            info = TimeInfo(
                raw_timestamp=int(now.timestamp()),
                formatted_time=state.last_updated,
                rfc3339=now.isoformat(),
            )
            self.entries.append((info, CandleData(price, price, price, price)))
            if len(self.entries) > MAX_ENTRIES:
                del self.entries[0]
            state.new_price_fetched = False


def build_candles(history: Sequence[HistoryEntry]) -> list[Candle]:
    """Turn history entries into candles positioned at their Unix timestamps.

    Nothing is drawn if the first entry's time is unreadable; other unreadable
    entries are skipped.
    """
    if not history or _parse_rfc3339(history[0][0].rfc3339) is None:
        return []

    candles = []
    for info, data in history:
        if _parse_rfc3339(info.rfc3339) is None:
            continue
        rising = data.close >= data.open
        candles.append(
            Candle(
                x=float(info.raw_timestamp),
                low=data.low,
                open=data.open,
                median=(data.open + data.close) / 2.0,
                close=data.close,
                high=data.high,
                fill=UP_FILL if rising else DOWN_FILL,
                stroke=UP_STROKE if rising else DOWN_STROKE,
            )
        )
    return candles


def y_bounds(history: Sequence[HistoryEntry]) -> tuple[float, float]:
    """Price range of the history padded by 5% each side, never below zero."""
    if not history:
        raise ValueError("cannot compute bounds of an empty history")
    min_price = min(data.low for _, data in history)
    max_price = max(data.high for _, data in history)
    padding = (max_price - min_price) * PADDING_FRACTION
    return max(min_price - padding, 0.0), max_price + padding


def price_text(price: float) -> str:
    """Headline text: the price and how many satoshis a dollar buys."""
    if price > 0.0:
        return f"${price:.2f} | {SATOSHIS_PER_BTC / price:.0f} sats/$"
    return LOADING_TEXT


def chart_title(timeframe: ChartTimeframe) -> str:
    """Label shown above the chart for ``timeframe``."""
    return _CHART_TITLES[timeframe]


def format_axis_time(value: float) -> str:
    """Format a plot x value (Unix seconds) as local ``YYYY-MM-DD  HH:MM``."""
    if math.isnan(value):
        seconds = 0
    elif math.isinf(value):
        seconds = _I64_MAX if value > 0 else _I64_MIN
    else:
        seconds = min(max(int(value), _I64_MIN), _I64_MAX)
    try:
        local = datetime.fromtimestamp(seconds)
    except (OverflowError, OSError, ValueError):
        return f"{value:.1f}"
    return f"{local:%Y-%m-%d}  {local:%H}:{local:%M}"


def current_price_line(
    history: Sequence[HistoryEntry], price: float
) -> tuple[str, list[tuple[float, float]]] | None:
    """Label and end points of the horizontal current-price line, if one is drawn."""
    if price <= 0.0 or not history:
        return None
    start_x = float(history[0][0].raw_timestamp)
    end_x = float(history[-1][0].raw_timestamp)
    return f"Current Price: ${price:.2f}", [(start_x, price), (end_x, price)]