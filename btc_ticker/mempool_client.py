"""Client for a mempool.space-compatible block explorer API."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime

import requests

logger = logging.getLogger(__name__)

DEFAULT_MEMPOOL_API_URL = "https://mempool.space/api"
DEFAULT_TIMEOUT = 10.0

INVALID_TIMESTAMP = "Invalid timestamp"
_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"
_U32_MAX = 0xFFFFFFFF
_UNSIGNED = re.compile(r"\+?[0-9]+")

_SCHEME = re.compile(r"([A-Za-z][A-Za-z0-9+.\-]*):(.*)", re.DOTALL)
_SPECIAL_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}
_FORBIDDEN_HOST_CHARS = frozenset(" #%/:<>?@[\\]^|\t\n\r")
_STRIPPED = "".join(chr(code) for code in range(0x21))


class MempoolError(Exception):
    """Raised when a mempool API request fails or returns unusable data."""


def _u32(obj: dict, name: str) -> int:
    if name not in obj:
        raise ValueError(f"missing field `{name}`")
    value = obj[name]
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U32_MAX:
        raise ValueError(f"invalid value for `{name}`: expected u32")
    return value


def _string(obj: dict, name: str) -> str:
    if name not in obj:
        raise ValueError(f"missing field `{name}`")
    value = obj[name]
    if not isinstance(value, str):
        raise ValueError(f"invalid type for `{name}`: expected a string")
    return value


@dataclass(frozen=True)
class BlockInfo:
    """Details of a single block."""

    id: str
    height: int
    version: int
    timestamp: int
    bits: int
    nonce: int
    difficulty: float
    merkle_root: str
    tx_count: int
    size: int
    weight: int
    previousblockhash: str | None = None

    @classmethod
    def _from_json(cls, obj: object) -> BlockInfo:
        if not isinstance(obj, dict):
            raise ValueError("expected an object for block details")
        difficulty = obj.get("difficulty")
        if "difficulty" not in obj:
            raise ValueError("missing field `difficulty`")
        if isinstance(difficulty, bool) or not isinstance(difficulty, (int, float)):
            raise ValueError("invalid type for `difficulty`: expected a number")
        previous = obj.get("previousblockhash")
        if previous is not None and not isinstance(previous, str):
            raise ValueError("invalid type for `previousblockhash`: expected a string")
        return cls(
            id=_string(obj, "id"),
            height=_u32(obj, "height"),
            version=_u32(obj, "version"),
            timestamp=_u32(obj, "timestamp"),
            bits=_u32(obj, "bits"),
            nonce=_u32(obj, "nonce"),
            difficulty=float(difficulty),
            merkle_root=_string(obj, "merkle_root"),
            tx_count=_u32(obj, "tx_count"),
            size=_u32(obj, "size"),
            weight=_u32(obj, "weight"),
            previousblockhash=previous,
        )


@dataclass(frozen=True)
class FeeEstimate:
    """Recommended fee rates in sat/vB."""

    fastest_fee: int
    half_hour_fee: int
    hour_fee: int
    economy_fee: int

    @classmethod
    def _from_json(cls, obj: object) -> FeeEstimate:
        if not isinstance(obj, dict):
            raise ValueError("expected an object for fee estimates")
        return cls(
            fastest_fee=_u32(obj, "fastestFee"),
            half_hour_fee=_u32(obj, "halfHourFee"),
            hour_fee=_u32(obj, "hourFee"),
            economy_fee=_u32(obj, "economyFee"),
        )


def _serialize_url(text: str) -> str | None:
    """Parse an absolute URL and return its canonical form, or None if invalid."""
    text = text.strip(_STRIPPED)
    match = _SCHEME.fullmatch(text)
    if match is None:
        return None
    scheme, rest = match.group(1).lower(), match.group(2)
    if scheme not in _SPECIAL_PORTS:
        return f"{scheme}:{rest}"

    rest = rest.replace("\\", "/").lstrip("/")
    cut = min((rest.find(ch) for ch in "/?#" if ch in rest), default=len(rest))
    authority, tail = rest[:cut], rest[cut:]

    userinfo, _, hostport = authority.rpartition("@")
    if hostport.startswith("["):
        end = hostport.find("]")
        if end == -1:
            return None
        host, after = hostport[: end + 1], hostport[end + 1 :]
        if after and not after.startswith(":"):
            return None
        port = after[1:]
    else:
        host, _, port = hostport.partition(":")
        if any(ch in _FORBIDDEN_HOST_CHARS for ch in host):
            return None
    if not host:
        return None
    host = host.lower()

    if port:
        if not port.isdigit() or not port.isascii() or int(port) > 65535:
            return None
        port = "" if int(port) == _SPECIAL_PORTS[scheme] else str(int(port))

    if not tail or tail[0] in "?#":
        tail = "/" + tail

    credentials = f"{userinfo}@" if userinfo else ""
    port_part = f":{port}" if port else ""
    return f"{scheme}://{credentials}{host}{port_part}{tail}"


def normalize_url(input_url: str) -> str:
    """Canonicalise an API base URL: add a scheme if missing, end it with ``/api``.

    Input that cannot be parsed even with ``https://`` prepended is returned unchanged.
    """
    serialized = _serialize_url(input_url)
    if serialized is None:
        serialized = _serialize_url(f"https://{input_url}")
    if serialized is None:
        return input_url
    if serialized.endswith("/"):
        serialized = serialized[:-1]
    if not serialized.endswith("/api"):
        serialized = f"{serialized}/api"
    return serialized


def _status_text(response: requests.Response) -> str:
    return f"{response.status_code} {response.reason or ''}".rstrip()


class MempoolClient:
    """Fetches the chain tip and fee recommendations from a mempool instance."""

    def __init__(self, base_url: str = DEFAULT_MEMPOOL_API_URL, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.base_url = normalize_url(base_url)
        self.timeout = timeout
        self._session = requests.Session()

    def _get(self, url: str, failure: str) -> requests.Response:
        try:
            response = self._session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise MempoolError(f"{failure}: {exc}") from exc
        if not response.ok:
            raise MempoolError(f"API returned error status: {_status_text(response)}")
        return response

    def fetch_latest_block(self) -> BlockInfo:
        """Return the details of the block at the chain tip."""
        url = f"{self.base_url}/blocks/tip/height"
        logger.info("Fetching latest block height from: %s", url)

        height_text = self._get(url, "Failed to fetch block height").text
        if not _UNSIGNED.fullmatch(height_text) or int(height_text) > _U32_MAX:
            raise MempoolError(
                f"Failed to parse block height as number: {height_text!r}"
            )
        height = int(height_text)

        block_hash = self._get(
            f"{self.base_url}/block-height/{height}", "Failed to fetch block hash"
        ).text

        response = self._get(
            f"{self.base_url}/block/{block_hash}", "Failed to fetch block details"
        )
        try:
            return BlockInfo._from_json(response.json())
        except ValueError as exc:
            raise MempoolError(f"Failed to parse block details: {exc}") from exc

    def fetch_fee_estimates(self) -> FeeEstimate:
        """Return the recommended fee rates."""
        url = f"{self.base_url}/v1/fees/recommended"
        logger.info("Fetching fee estimates from: %s", url)

        response = self._get(url, "Failed to fetch fee estimates")
        try:
            return FeeEstimate._from_json(response.json())
        except ValueError as exc:
            raise MempoolError(f"Failed to parse fee estimates: {exc}") from exc


def format_unix_timestamp(timestamp: int) -> str:
    """Format a Unix timestamp as local ``YYYY-MM-DD HH:MM``."""
    try:
        return datetime.fromtimestamp(timestamp).strftime(_TIMESTAMP_FORMAT)
    except (OverflowError, OSError, ValueError):
        return INVALID_TIMESTAMP