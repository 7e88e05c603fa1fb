import re
from datetime import datetime

import pytest
import requests
import responses

from btc_ticker.mempool_client import (
    DEFAULT_MEMPOOL_API_URL,
    BlockInfo,
    FeeEstimate,
    MempoolClient,
    MempoolError,
    format_unix_timestamp,
    normalize_url,
)

BASE = "https://mempool.space/api"
BLOCK_HASH = "00000000000000000000placeholderhash"

BLOCK_JSON = {
    "id": BLOCK_HASH,
    "height": 820000,
    "version": 536870912,
    "timestamp": 1700000000,
    "bits": 386147408,
    "nonce": 12345,
    "difficulty": 64678587803496.61,
    "merkle_root": "feedface",
    "tx_count": 3000,
    "size": 1500000,
    "weight": 3990000,
    "previousblockhash": "cafebabe",
}


@pytest.fixture
def mocked():
    with responses.RequestsMock() as rsps:
        yield rsps


def _register_block_chain(rsps, block_json):
    rsps.add(responses.GET, f"{BASE}/blocks/tip/height", body="820000")
    rsps.add(responses.GET, f"{BASE}/block-height/820000", body=BLOCK_HASH)
    rsps.add(responses.GET, f"{BASE}/block/{BLOCK_HASH}", json=block_json)


@pytest.mark.parametrize(
    "value",
    [
        "https://mempool.space/api",
        "https://mempool.space/api/",
        "https://mempool.space",
        "https://mempool.space/",
        "mempool.space",
        "HTTPS://Mempool.Space",
        "  https://mempool.space  ",
    ],
)
def test_normalize_url_to_default(value):
    assert normalize_url(value) == "https://mempool.space/api"


def test_normalize_url_keeps_port():
    assert normalize_url("http://localhost:8999/") == "http://localhost:8999/api"


def test_normalize_url_drops_default_port():
    assert normalize_url("https://example.com:443/") == "https://example.com/api"


def test_normalize_url_unparseable_returned_unchanged():
    assert normalize_url("") == ""


def test_normalize_url_idempotent():
    once = normalize_url("example.com/mempool")
    assert normalize_url(once) == once
    assert once.endswith("/api")


def test_client_base_url_normalized():
    assert MempoolClient().base_url == DEFAULT_MEMPOOL_API_URL
    assert MempoolClient("mempool.space/", timeout=2).base_url == DEFAULT_MEMPOOL_API_URL


def test_fetch_latest_block(mocked):
    _register_block_chain(mocked, BLOCK_JSON)
    block = MempoolClient().fetch_latest_block()
    assert block.height == 820000
    assert block.id == BLOCK_HASH
    assert block.timestamp == 1700000000
    assert block.difficulty == 64678587803496.61
    assert block.previousblockhash == "cafebabe"
    assert [call.request.url for call in mocked.calls] == [
        f"{BASE}/blocks/tip/height",
        f"{BASE}/block-height/820000",
        f"{BASE}/block/{BLOCK_HASH}",
    ]


def test_fetch_latest_block_without_previous_hash(mocked):
    body = {k: v for k, v in BLOCK_JSON.items() if k != "previousblockhash"}
    _register_block_chain(mocked, body)
    block = MempoolClient().fetch_latest_block()
    assert block == BlockInfo(**{**body, "difficulty": float(body["difficulty"])})
    assert block.previousblockhash is None


@pytest.mark.parametrize("text", ["abc", "", "-5", "820000\n", "4294967296"])
def test_fetch_latest_block_bad_height(mocked, text):
    mocked.add(responses.GET, f"{BASE}/blocks/tip/height", body=text)
    with pytest.raises(MempoolError, match="Failed to parse block height"):
        MempoolClient().fetch_latest_block()


def test_fetch_latest_block_error_status(mocked):
    mocked.add(responses.GET, f"{BASE}/blocks/tip/height", status=503)
    with pytest.raises(MempoolError, match="API returned error status: 503"):
        MempoolClient().fetch_latest_block()


def test_fetch_latest_block_hash_error_status(mocked):
    mocked.add(responses.GET, f"{BASE}/blocks/tip/height", body="820000")
    mocked.add(responses.GET, f"{BASE}/block-height/820000", status=404)
    with pytest.raises(MempoolError, match="API returned error status: 404"):
        MempoolClient().fetch_latest_block()


def test_fetch_latest_block_connection_error(mocked):
    mocked.add(
        responses.GET,
        f"{BASE}/blocks/tip/height",
        body=requests.exceptions.ConnectionError("down"),
    )
    with pytest.raises(MempoolError, match="Failed to fetch block height"):
        MempoolClient().fetch_latest_block()


@pytest.mark.parametrize(
    "change",
    [{"height": -1}, {"tx_count": "3000"}, {"difficulty": "high"}, {"id": 7}],
)
def test_fetch_latest_block_bad_details(mocked, change):
    _register_block_chain(mocked, {**BLOCK_JSON, **change})
    with pytest.raises(MempoolError, match="Failed to parse block details"):
        MempoolClient().fetch_latest_block()


def test_fetch_fee_estimates(mocked):
    mocked.add(
        responses.GET,
        f"{BASE}/v1/fees/recommended",
        json={"fastestFee": 25, "halfHourFee": 20, "hourFee": 15, "economyFee": 8, "minimumFee": 1},
    )
    fees = MempoolClient().fetch_fee_estimates()
    assert fees == FeeEstimate(fastest_fee=25, half_hour_fee=20, hour_fee=15, economy_fee=8)


def test_fetch_fee_estimates_custom_url(mocked):
    mocked.add(
        responses.GET,
        "http://localhost:8999/api/v1/fees/recommended",
        json={"fastestFee": 3, "halfHourFee": 2, "hourFee": 1, "economyFee": 1},
    )
    fees = MempoolClient("http://localhost:8999").fetch_fee_estimates()
    assert fees.fastest_fee == 3


def test_fetch_fee_estimates_missing_field(mocked):
    mocked.add(responses.GET, f"{BASE}/v1/fees/recommended", json={"fastestFee": 25})
    with pytest.raises(MempoolError, match="Failed to parse fee estimates"):
        MempoolClient().fetch_fee_estimates()


def test_fetch_fee_estimates_error_status(mocked):
    mocked.add(responses.GET, f"{BASE}/v1/fees/recommended", status=500)
    with pytest.raises(MempoolError, match="API returned error status: 500"):
        MempoolClient().fetch_fee_estimates()


def test_format_unix_timestamp_round_trip():
    ts = 1700000000
    text = format_unix_timestamp(ts)
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}", text)
    assert datetime.strptime(text, "%Y-%m-%d %H:%M").timestamp() == ts - ts % 60


def test_format_unix_timestamp_out_of_range():
    assert format_unix_timestamp(10**15) == "Invalid timestamp"