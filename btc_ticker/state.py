"""Shared application state and the refresh routines that update it."""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .bitstamp_client import (
    OHLC,
    BitstampClient,
    BitstampError,
    ChartTimeframe,
    format_unix_timestamp,
)
from .config import AppConfig
from .mempool_client import DEFAULT_MEMPOOL_API_URL, MempoolClient, MempoolError
from .mempool_client import format_unix_timestamp as format_block_time

logger = logging.getLogger(__name__)

_INTEGER = re.compile(r"[+-]?[0-9]+")
_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1


@dataclass(frozen=True)
class CandleData:
    """Open, high, low and close prices of one candle."""

    open: float
    high: float
    low: float
    close: float


@dataclass(frozen=True)
class TimeInfo:
    """A candle's time as a Unix timestamp, a local display string and RFC 3339."""

    raw_timestamp: int
    formatted_time: str
    rfc3339: str

    def __str__(self) -> str:
        return self.formatted_time


HistoryEntry = tuple[TimeInfo, CandleData]


def current_timestamp() -> str:
    """Return the local time as ``YYYY-MM-DD HH:MM:SS``."""
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _parse_int(text: str) -> int:
    if not _INTEGER.fullmatch(text):
        raise ValueError(f"invalid integer: {text!r}")
    value = int(text)
    if not _I64_MIN <= value <= _I64_MAX:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def _parse_float(text: str) -> float:
    if not text or any(ch.isspace() or ch == "_" for ch in text):
        raise ValueError(f"invalid float literal: {text!r}")
    return float(text)


def _rfc3339(timestamp: int) -> str | None:
    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return None


def history_from_ohlc(points: Iterable[OHLC], strict: bool = False) -> list[HistoryEntry]:
    """Convert Bitstamp candles to chart history.

    Points whose timestamp is unusable are always dropped. With ``strict`` a point
    whose prices do not parse is dropped too; otherwise such prices become 0.0.
    """
    history: list[HistoryEntry] = []
    for point in points:
        try:
            timestamp = _parse_int(point.timestamp)
        except ValueError:
            logger.debug("Failed to parse timestamp %r", point.timestamp)
            continue

        prices = (point.open, point.high, point.low, point.close)
        if strict:
            try:
                candle = CandleData(*(_parse_float(value) for value in prices))
            except ValueError:
                logger.debug("Failed to parse price values of %r", point)
                continue
        else:
            values = []
            for value in prices:
                try:
                    values.append(_parse_float(value))
                except ValueError:
                    values.append(0.0)
            candle = CandleData(*values)

        rfc3339 = _rfc3339(timestamp)
        if rfc3339 is None:
            logger.debug("Invalid timestamp: %d", timestamp)
            continue
        info = TimeInfo(
            raw_timestamp=timestamp,
            formatted_time=format_unix_timestamp(point.timestamp),
            rfc3339=rfc3339,
        )
        history.append((info, candle))
    return history


class BitcoinState:
    """Everything the window and the background updaters share; guard with ``lock``."""

    def __init__(
        self, config: AppConfig | None = None, config_path: str | Path | None = None
    ) -> None:
        self.config_path = Path(config_path) if config_path is not None else None
        self.config = config if config is not None else AppConfig.load(self.config_path)
        self.lock = threading.Lock()

        self.price = 0.0
        self.last_updated = "Never"
        self.updating = False
        self.new_price_fetched = False
        self.historical_data: list[HistoryEntry] = []
        self.chart_timeframe = ChartTimeframe.HOURS_24
        self.timeframe_changed = False

        self.block_height = 0
        self.block_time = "Unknown"
        self.fastest_fee = 0
        self.half_hour_fee = 0
        self.hour_fee = 0
        self.economy_fee = 0
        self.minimum_fee = 0
        self.mempool_updating = False
        self.mempool_last_updated = "Never"
        self.mempool_api_url = self.config.mempool_api_url
        self.mempool_custom_url_enabled = self.config.mempool_custom_url_enabled

    def _save_config(self) -> None:
        try:
            self.config.save(self.config_path)
        except OSError as exc:
            logger.error("Failed to save config: %s", exc)

    def set_mempool_api_url(self, url: str) -> None:
        """Store a custom mempool API URL and persist it."""
        self.mempool_api_url = url
        self.config.mempool_api_url = url
        self._save_config()

    def set_custom_mempool_enabled(self, enabled: bool) -> None:
        """Switch the custom mempool URL on or off and persist the choice."""
        self.mempool_custom_url_enabled = enabled
        self.config.mempool_custom_url_enabled = enabled
        self._save_config()

    def active_mempool_url(self) -> str:
        """The mempool API URL currently in use."""
        if self.mempool_custom_url_enabled:
            return self.mempool_api_url
        return DEFAULT_MEMPOOL_API_URL

    def set_timeframe(self, timeframe: ChartTimeframe) -> bool:
        """Select a chart timeframe; return whether it differed from the current one."""
        if self.chart_timeframe == timeframe:
            return False
        self.chart_timeframe = timeframe
        self.timeframe_changed = True
        return True


def load_initial_data(state: BitcoinState, client: BitstampClient | None = None) -> None:
    """Seed the state with 24-hour history and take the latest close as the price."""
    client = client if client is not None else BitstampClient()
    try:
        points = client.fetch_historical_prices(ChartTimeframe.HOURS_24)
    except BitstampError as exc:
        logger.error("Failed to fetch initial historical data: %s", exc)
        return

    for index, point in enumerate(points[:5]):
        logger.debug("Point %d: timestamp=%s, close=%s", index, point.timestamp, point.close)

    history = history_from_ohlc(points, strict=True)
    logger.info("Total processed history points: %d", len(history))
    if not history:
        return
    with state.lock:
        state.historical_data = history
        state.price = history[-1][1].close
        state.last_updated = current_timestamp()


def refresh_bitcoin_price(state: BitcoinState, client: BitstampClient | None = None) -> None:
    """Fetch the current price, then the history for the selected timeframe."""
    logger.info("Refreshing Bitcoin price and historical data...")
    with state.lock:
        state.updating = True

    client = client if client is not None else BitstampClient()
    try:
        price = client.fetch_current_price()
    except BitstampError as exc:
        logger.error("Failed to fetch BTC price: %s", exc)
        with state.lock:
            state.updating = False
            if state.historical_data:
                fallback = state.historical_data[-1][1].close
                logger.info("Using last historical price as fallback: $%.2f", fallback)
                state.price = fallback
                state.last_updated = f"{current_timestamp()}* (fallback)"
        return

    logger.info("Updated BTC price: $%.2f", price)
    with state.lock:
        if state.price != price:
            state.new_price_fetched = True
        state.price = price
        state.last_updated = current_timestamp()
        state.updating = False
        timeframe = state.chart_timeframe

    try:
        points = client.fetch_historical_prices(timeframe)
    except BitstampError as exc:
        logger.error("Failed to fetch historical data: %s", exc)
        return

    history = history_from_ohlc(points, strict=False)
    if history:
        with state.lock:
            state.historical_data = history
            state.new_price_fetched = True


def refresh_mempool_data(
    state: BitcoinState,
    client_factory: Callable[[str], MempoolClient] = MempoolClient,
) -> None:
    """Fetch the chain tip and fee estimates from the active mempool instance."""
    logger.info("Refreshing mempool data...")
    with state.lock:
        url = state.active_mempool_url()
        state.mempool_updating = True

    client = client_factory(url)

    try:
        block = client.fetch_latest_block()
    except MempoolError as exc:
        logger.error("Failed to fetch block info: %s", exc)
    else:
        logger.info("Updated block height: %d", block.height)
        with state.lock:
            state.block_height = block.height
            state.block_time = format_block_time(block.timestamp)

    try:
        fees = client.fetch_fee_estimates()
    except MempoolError as exc:
        logger.error("Failed to fetch fee estimates: %s", exc)
        with state.lock:
            state.mempool_updating = False
        return

    logger.info("Updated fee estimates: fastest=%d sat/vB", fees.fastest_fee)
    with state.lock:
        state.fastest_fee = fees.fastest_fee
        state.half_hour_fee = fees.half_hour_fee
        state.hour_fee = fees.hour_fee
        state.economy_fee = fees.economy_fee
        state.mempool_last_updated = current_timestamp()
        state.mempool_updating = False