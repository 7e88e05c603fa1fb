"""Client for the Bitstamp public ticker and OHLC endpoints."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum

import requests

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.bitstamp.net/api/v2"
DEFAULT_TIMEOUT = 10.0

INVALID_TIMESTAMP = "Invalid timestamp"
_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"
_INTEGER = re.compile(r"[+-]?[0-9]+")
_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1


class BitstampError(Exception):
    """Raised when a Bitstamp request fails or returns unusable data."""


@dataclass(frozen=True)
class OHLC:
    """One candle as returned by Bitstamp; every value is a decimal string."""

    timestamp: str
    open: str
    high: str
    low: str
    close: str

    @classmethod
    def _from_json(cls, obj: object) -> OHLC:
        if not isinstance(obj, dict):
            raise ValueError("expected an object for a candle")
        values = {}
        for field in fields(cls):
            if field.name not in obj:
                raise ValueError(f"missing field `{field.name}`")
            value = obj[field.name]
            if not isinstance(value, str):
                raise ValueError(f"invalid type for `{field.name}`: expected a string")
            values[field.name] = value
        return cls(**values)


class ChartTimeframe(Enum):
    """The span of price history shown on the chart."""

    HOURS_24 = "24h"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    def description(self) -> str:
        """Human-readable name of the timeframe."""
        return _DESCRIPTIONS[self]

    def api_params(self) -> tuple[int, int]:
        """Candle step in seconds and number of candles to request."""
        return _API_PARAMS[self]


_DESCRIPTIONS = {
    ChartTimeframe.HOURS_24: "24 Hours (hourly)",
    ChartTimeframe.WEEK: "1 Week (4-hour)",
    ChartTimeframe.MONTH: "1 Month (daily)",
    ChartTimeframe.YEAR: "1 Year (daily)",
}

_API_PARAMS = {
    ChartTimeframe.HOURS_24: (3600, 24),
    ChartTimeframe.WEEK: (14400, 42),
    ChartTimeframe.MONTH: (86400, 30),
    ChartTimeframe.YEAR: (86400, 365),
}


def _parse_float(text: str) -> float:
    if not text or any(ch.isspace() or ch == "_" for ch in text):
        raise ValueError(f"invalid float literal: {text!r}")
    return float(text)


def _status_text(response: requests.Response) -> str:
    return f"{response.status_code} {response.reason or ''}".rstrip()


class BitstampClient:
    """Fetches the current BTC/USD price and its candle history."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._session = requests.Session()

    def _get(self, url: str, failure: str) -> requests.Response:
        try:
            response = self._session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise BitstampError(f"{failure}: {exc}") from exc
        return response

    def fetch_current_price(self) -> float:
        """Return the last traded BTC/USD price."""
        url = f"{self.base_url}/ticker/btcusd/"
        logger.info("Fetching current BTC price from: %s", url)

        response = self._get(url, "Failed to fetch price")
        if not response.ok:
            raise BitstampError(f"API returned error status: {_status_text(response)}")

        try:
            payload = response.json()
            last = payload["last"]
            if not isinstance(last, str):
                raise TypeError("invalid type for `last`: expected a string")
        except (ValueError, KeyError, TypeError) as exc:
            raise BitstampError(f"Failed to parse price response: {exc}") from exc

        try:
            return _parse_float(last)
        except ValueError as exc:
            raise BitstampError(f"Failed to parse price value: {exc}") from exc

    def fetch_historical_prices(self, timeframe: ChartTimeframe) -> list[OHLC]:
        """Return the candles for ``timeframe``, oldest first as Bitstamp sends them."""
        step, limit = timeframe.api_params()
        url = f"{self.base_url}/ohlc/btcusd/?step={step}&limit={limit}"
        logger.info("Fetching historical data from: %s (%s)", url, timeframe.description())

        response = self._get(url, "Failed to fetch historical data")
        if not response.ok:
            raise BitstampError(
                f"Historical API returned error status: {_status_text(response)}"
            )

        text = response.text
        if len(text) > 200:
            logger.debug("Response text sample: %s...", text[:200])
        else:
            logger.debug("Response text: %s", text)

        try:
            payload = json.loads(text)
            candles = payload["data"]["ohlc"]
            if not isinstance(candles, list):
                raise TypeError("invalid type for `ohlc`: expected a sequence")
            history = [OHLC._from_json(item) for item in candles]
        except (ValueError, KeyError, TypeError) as exc:
            raise BitstampError(f"Failed to parse historical data: {exc}") from exc

        logger.info(
            "Successfully parsed historical data for %s (%d candles)",
            timeframe.description(),
            len(history),
        )
        if history:
            sample = history[0].timestamp
            logger.debug(
                "Sample timestamp: %s formatted as: %s", sample, format_unix_timestamp(sample)
            )
        return history


def format_unix_timestamp(timestamp_str: str) -> str:
    """Format a decimal Unix timestamp as local ``YYYY-MM-DD HH:MM``."""
    if not _INTEGER.fullmatch(timestamp_str):
        return INVALID_TIMESTAMP
    timestamp = int(timestamp_str)
    if not _I64_MIN <= timestamp <= _I64_MAX:
        return INVALID_TIMESTAMP
    try:
        return datetime.fromtimestamp(timestamp).strftime(_TIMESTAMP_FORMAT)
    except (OverflowError, OSError, ValueError):
        return INVALID_TIMESTAMP