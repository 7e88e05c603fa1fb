# btc-ticker

A small desktop window that keeps an eye on Bitcoin:

- the current BTC/USD price from Bitstamp, with sats per dollar
- a candlestick chart of recent prices (24 hours, 1 week, 1 month or 1 year)
- the latest block height and block time from a mempool API
- recommended fee rates (fastest, 30 minutes, 1 hour, economy) in sat/vB

The price is refreshed every minute. Mempool data is refreshed every two minutes.
The window itself redraws once a second.

## Installation

```
pip install .
```

The window is built with Tkinter and Matplotlib, so your Python needs Tk
support. To run the tests:

```
pip install ".[test]"
pytest
```

## Usage

Start the window with:

```
btc-ticker
```

Add `-v` (or `--verbose`) to log debug output, such as samples of the API
responses.

At start-up it loads 24 hours of hourly candles and takes the latest close as
the price. After that it fetches the current price, the history for the
selected timeframe and the mempool data.

If fetching the current price fails, the last close of the loaded history is
shown instead, and the "Last updated" time is marked `* (fallback)`.

### Menus

- **Settings → Mempool Configuration** opens the mempool settings window.
- **Ticker** holds *Refresh BTC Price*, *Refresh Mempool Data*, the four chart
  timeframes and *Quit*.

### Chart timeframes

| Timeframe | Candle size | Candles |
|-----------|-------------|---------|
| 24 Hours  | 1 hour      | 24      |
| 1 Week    | 4 hours     | 42      |
| 1 Month   | 1 day       | 30      |
| 1 Year    | 1 day       | 365     |

Rising candles are drawn green, falling ones red. An orange line marks the
current price across the chart.

### Using your own mempool instance

By default the mempool data comes from `https://mempool.space/api`. In
*Mempool Configuration*, tick "Use custom mempool instance", enter a URL and
press *Apply*; *Reset to Default* goes back to the default. The URL is
normalised before use:

- a missing scheme becomes `https://`
- a trailing slash is removed
- `/api` is added if it is not already there

The setting is kept in `config.json` in your user configuration directory,
under `btc-ticker`:

```json
{
  "mempool_custom_url_enabled": false,
  "mempool_api_url": "https://mempool.space/api"
}
```

If this file is missing or cannot be read, the defaults are used and written back.

## Using it as a library

The API clients and the configuration can be used on their own:

```python
from btc_ticker.bitstamp_client import BitstampClient, ChartTimeframe
from btc_ticker.mempool_client import MempoolClient, normalize_url
from btc_ticker.config import AppConfig

price = BitstampClient().fetch_current_price()
candles = BitstampClient().fetch_historical_prices(ChartTimeframe.WEEK)  # list of OHLC

mempool = MempoolClient("mempool.example.com")  # normalised to https://.../api
fees = mempool.fetch_fee_estimates()
block = mempool.fetch_latest_block()

print(normalize_url("mempool.example.com/"))  # https://mempool.example.com/api

config = AppConfig.load()            # or AppConfig.load("some/config.json")
```

A failed request raises `BitstampError` or `MempoolError`. `AppConfig.save`
raises `OSError` if the file cannot be written.

`btc_ticker.state` holds the shared `BitcoinState` and the refresh functions
(`load_initial_data`, `refresh_bitcoin_price`, `refresh_mempool_data`);
`btc_ticker.chart` turns history into drawable candles, axis bounds and labels.

## What it does not do

There is no system tray icon: the refresh, timeframe and quit actions live in
the window's *Ticker* menu instead. Only the BTC/USD pair is supported.