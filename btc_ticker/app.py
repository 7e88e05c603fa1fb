"""The price window, its menus and the background updaters that feed it."""

from __future__ import annotations

import argparse
import logging
import threading
from collections.abc import Callable

from .bitstamp_client import BitstampClient, ChartTimeframe
from .chart import (
    PRICE_LINE_COLOR,
    PRICE_LINE_WIDTH,
    PriceHistory,
    build_candles,
    chart_title,
    current_price_line,
    format_axis_time,
    price_text,
    y_bounds,
)
from .mempool_client import DEFAULT_MEMPOOL_API_URL
from .state import (
    BitcoinState,
    load_initial_data,
    refresh_bitcoin_price,
    refresh_mempool_data,
)

logger = logging.getLogger(__name__)

WINDOW_TITLE = "Bitcoin Metrics"
WINDOW_SIZE = "700x480"
REFRESH_MS = 1000
PRICE_INTERVAL = 60.0
MEMPOOL_INTERVAL = 120.0

REFRESH_BTC = "refresh-btc"
REFRESH_MEMPOOL = "refresh-mempool"
QUIT_APP = "quit-app"

_TIMEFRAME_EVENTS = {
    "timeframe-24h": ChartTimeframe.HOURS_24,
    "timeframe-week": ChartTimeframe.WEEK,
    "timeframe-month": ChartTimeframe.MONTH,
    "timeframe-year": ChartTimeframe.YEAR,
}


def handle_menu_event(
    state: BitcoinState, event_id: str, client: BitstampClient | None = None
) -> bool:
    """Carry out a ticker menu action; return whether ``event_id`` was recognised.

    Quitting raises ``SystemExit``.
    """
    if event_id == REFRESH_BTC:
        refresh_bitcoin_price(state, client)
    elif event_id == REFRESH_MEMPOOL:
        refresh_mempool_data(state)
    elif event_id in _TIMEFRAME_EVENTS:
        with state.lock:
            changed = state.set_timeframe(_TIMEFRAME_EVENTS[event_id])
        if changed:
            refresh_bitcoin_price(state, client)
    elif event_id == QUIT_APP:
        raise SystemExit(0)
    else:
        return False
    return True


def _every(interval: float, stop_event: threading.Event, action: Callable[[], None]) -> None:
    while not stop_event.wait(interval):
        action()


def _initial_load(state: BitcoinState, stop_event: threading.Event) -> None:
    if stop_event.is_set():
        return
    load_initial_data(state)
    refresh_bitcoin_price(state)
    refresh_mempool_data(state)


def start_background_updates(
    state: BitcoinState, stop_event: threading.Event
) -> list[threading.Thread]:
    """Start the initial load and the periodic price and mempool updaters.

    The updaters run until ``stop_event`` is set; the started threads are returned.
    """
    threads = [
        threading.Thread(
            target=_initial_load, args=(state, stop_event), name="initial-load", daemon=True
        ),
        threading.Thread(
            target=_every,
            args=(PRICE_INTERVAL, stop_event, lambda: refresh_bitcoin_price(state)),
            name="price-updates",
            daemon=True,
        ),
        threading.Thread(
            target=_every,
            args=(MEMPOOL_INTERVAL, stop_event, lambda: refresh_mempool_data(state)),
            name="mempool-updates",
            daemon=True,
        ),
    ]
    for thread in threads:
        thread.start()
    return threads


def _spawn(target: Callable[..., None], *args: object) -> None:
    threading.Thread(target=target, args=args, daemon=True).start()


def _hex(rgb: tuple[int, int, int]) -> str:
    return "#{:02x}{:02x}{:02x}".format(*rgb)


class TickerApp:
    """The main window: network summary, headline price and candlestick chart."""

    def __init__(self, root, state: BitcoinState) -> None:
        import tkinter as tk
        from tkinter import ttk

        from matplotlib.backends.backend_tkagg import (
            FigureCanvasTkAgg,
            NavigationToolbar2Tk,
        )
        from matplotlib.figure import Figure
        from matplotlib.ticker import FuncFormatter

        self._tk = tk
        self._ttk = ttk
        self._formatter = FuncFormatter(lambda value, _pos: format_axis_time(value))
        self.root = root
        self.state = state

        with state.lock:
            self.history = PriceHistory(state.historical_data)
            url = state.mempool_api_url

        self.mempool_url_input = tk.StringVar(master=root, value=url)
        self._settings = None
        self._custom_var = None
        self._url_entry = None
        self._apply_button = None
        self._using_var = tk.StringVar(master=root)
        self._drawn = None

        self._build_menu()

        network = ttk.Frame(root, padding=6)
        network.pack(side="top", fill="x")
        ttk.Label(network, text="Bitcoin Network", font=("TkDefaultFont", 13, "bold")).pack(
            anchor="w"
        )
        self._block_var = tk.StringVar(master=root)
        self._fees_var = tk.StringVar(master=root)
        ttk.Label(network, textvariable=self._block_var).pack(anchor="w")
        ttk.Label(network, textvariable=self._fees_var).pack(anchor="w")
        ttk.Separator(root, orient="horizontal").pack(fill="x")

        central = ttk.Frame(root, padding=6)
        central.pack(side="top", fill="both", expand=True)
        self._price_var = tk.StringVar(master=root)
        self._updated_var = tk.StringVar(master=root)
        self._title_var = tk.StringVar(master=root)
        ttk.Label(central, textvariable=self._price_var, font=("TkDefaultFont", 16, "bold")).pack(
            pady=(20, 5)
        )
        ttk.Label(central, textvariable=self._updated_var).pack()
        ttk.Label(central, textvariable=self._title_var).pack(pady=(20, 5))

        self.figure = Figure(figsize=(7, 2.8), dpi=100)
        self.axes = self.figure.add_subplot()
        self.canvas = FigureCanvasTkAgg(self.figure, master=central)
        self.toolbar = NavigationToolbar2Tk(self.canvas, central, pack_toolbar=False)
        self.toolbar.pack(side="bottom", fill="x")
        self.canvas.get_tk_widget().pack(fill="both", expand=True)

        self.refresh()

    def _build_menu(self) -> None:
        tk = self._tk
        menubar = tk.Menu(self.root)
        settings = tk.Menu(menubar, tearoff=False)
        settings.add_command(label="Mempool Configuration", command=self._toggle_settings)
        menubar.add_cascade(label="Settings", menu=settings)

        ticker = tk.Menu(menubar, tearoff=False)
        ticker.add_command(label="Refresh BTC Price", command=lambda: self._menu(REFRESH_BTC))
        ticker.add_command(
            label="Refresh Mempool Data", command=lambda: self._menu(REFRESH_MEMPOOL)
        )
        ticker.add_separator()
        for event_id, timeframe in _TIMEFRAME_EVENTS.items():
            ticker.add_command(
                label=timeframe.description(), command=lambda e=event_id: self._menu(e)
            )
        ticker.add_separator()
        ticker.add_command(label="Quit", command=lambda: self._menu(QUIT_APP))
        menubar.add_cascade(label="Ticker", menu=ticker)
        self.root.config(menu=menubar)

    def _menu(self, event_id: str) -> None:
        if event_id == QUIT_APP:
            handle_menu_event(self.state, event_id)
        else:
            _spawn(handle_menu_event, self.state, event_id)

    def _toggle_settings(self) -> None:
        if self._settings is not None:
            self._close_settings()
            return
        tk, ttk = self._tk, self._ttk
        window = tk.Toplevel(self.root)
        window.title("Mempool Configuration")
        window.resizable(False, False)
        window.protocol("WM_DELETE_WINDOW", self._close_settings)

        with self.state.lock:
            enabled = self.state.mempool_custom_url_enabled
        self._custom_var = tk.BooleanVar(master=window, value=enabled)
        ttk.Checkbutton(
            window,
            text="Use custom mempool instance",
            variable=self._custom_var,
            command=self._on_custom_toggled,
        ).pack(anchor="w", padx=8, pady=4)

        row = ttk.Frame(window)
        row.pack(fill="x", padx=8, pady=4)
        ttk.Label(row, text="Mempool API URL:").pack(side="left")
        self._url_entry = ttk.Entry(row, textvariable=self.mempool_url_input, width=40)
        self._url_entry.pack(side="left", fill="x", expand=True)

        self._apply_button = ttk.Button(window, text="Apply", command=self._apply_url)
        self._apply_button.pack(anchor="w", padx=8, pady=2)
        ttk.Button(window, text="Reset to Default", command=self._reset_url).pack(
            anchor="w", padx=8, pady=2
        )
        ttk.Separator(window, orient="horizontal").pack(fill="x", pady=4)
        ttk.Label(window, textvariable=self._using_var).pack(anchor="w", padx=8)
        ttk.Button(window, text="Close", command=self._close_settings).pack(
            anchor="w", padx=8, pady=4
        )
        self._settings = window
        self._update_settings_widgets()

    def _close_settings(self) -> None:
        if self._settings is not None:
            self._settings.destroy()
        self._settings = None
        self._custom_var = None
        self._url_entry = None
        self._apply_button = None

    def _on_custom_toggled(self) -> None:
        enabled = bool(self._custom_var.get())
        with self.state.lock:
            if enabled != self.state.mempool_custom_url_enabled:
                self.state.set_custom_mempool_enabled(enabled)
        self._update_settings_widgets()

    def _apply_url(self) -> None:
        url = self.mempool_url_input.get()
        if not url:
            return
        with self.state.lock:
            self.state.set_mempool_api_url(url)
        _spawn(refresh_mempool_data, self.state)
        self._update_settings_widgets()

    def _reset_url(self) -> None:
        with self.state.lock:
            self.state.set_custom_mempool_enabled(False)
        self.mempool_url_input.set(DEFAULT_MEMPOOL_API_URL)
        if self._custom_var is not None:
            self._custom_var.set(False)
        _spawn(refresh_mempool_data, self.state)
        self._update_settings_widgets()

    def _update_settings_widgets(self) -> None:
        if self._settings is None:
            return
        with self.state.lock:
            enabled = self.state.mempool_custom_url_enabled
            active = self.state.active_mempool_url()
        widget_state = "normal" if enabled else "disabled"
        self._url_entry.configure(state=widget_state)
        self._apply_button.configure(state=widget_state)
        self._using_var.set(f"Currently using: {active}")

    def refresh(self) -> None:
        """Pull the shared state into the window and schedule the next refresh."""
        self.history.sync(self.state)
        with self.state.lock:
            needs_reset = self.state.timeframe_changed
            price = self.state.price
            last_updated = self.state.last_updated
            timeframe = self.state.chart_timeframe
            block = (
                f"Block Height: {self.state.block_height} | "
                f"Block Time: {self.state.block_time} | "
                f"Last Updated: {self.state.mempool_last_updated}"
            )
            fees = (
                f"Fees (sat/vB): Fastest: {self.state.fastest_fee} | "
                f"30m: {self.state.half_hour_fee} | 1h: {self.state.hour_fee} | "
                f"Economy: {self.state.economy_fee}"
            )

        self._block_var.set(block)
        self._fees_var.set(fees)
        self._price_var.set(price_text(price))
        self._updated_var.set(f"Last updated: {last_updated}")
        self._title_var.set(chart_title(timeframe) if len(self.history) else "")
        self._draw_chart(price, needs_reset)
        self._update_settings_widgets()

        if needs_reset:
            with self.state.lock:
                self.state.timeframe_changed = False
        self.root.after(REFRESH_MS, self.refresh)

    def _draw_chart(self, price: float, needs_reset: bool) -> None:
        entries = list(self.history)
        signature = (len(entries), entries[-1] if entries else None, price)
        if signature == self._drawn and not needs_reset:
            return
        self._drawn = signature

        axes = self.axes
        axes.clear()
        candles = build_candles(entries)
        if candles:
            for candle in candles:
                axes.vlines(
                    candle.x,
                    candle.low,
                    candle.high,
                    colors=_hex(candle.stroke),
                    linewidth=candle.whisker_width,
                )
            axes.bar(
                [candle.x for candle in candles],
                [candle.close - candle.open for candle in candles],
                bottom=[candle.open for candle in candles],
                width=[candle.box_width for candle in candles],
                color=[_hex(candle.fill) for candle in candles],
                edgecolor=[_hex(candle.stroke) for candle in candles],
                linewidth=candles[0].stroke_width,
                label="BTC/USD",
            )
            low, high = y_bounds(entries)
            if low < high:
                axes.set_ylim(low, high)
            line = current_price_line(entries, price)
            if line is not None:
                label, points = line
                axes.plot(
                    [x for x, _ in points],
                    [y for _, y in points],
                    color=_hex(PRICE_LINE_COLOR),
                    linewidth=PRICE_LINE_WIDTH,
                    label=label,
                )
            axes.set_xlabel("Time (Local)")
            axes.set_ylabel("Price ($)")
            axes.xaxis.set_major_formatter(self._formatter)
            axes.legend(loc="upper right")
        self.canvas.draw_idle()


def main(argv: list[str] | None = None) -> int:
    """Open the ticker window and run until it is closed."""
    parser = argparse.ArgumentParser(prog="btc-ticker", description=WINDOW_TITLE)
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug output")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    import tkinter as tk

    state = BitcoinState()
    stop_event = threading.Event()
    start_background_updates(state, stop_event)

    root = tk.Tk()
    root.title(WINDOW_TITLE)
    root.geometry(WINDOW_SIZE)
    TickerApp(root, state)
    try:
        root.mainloop()
    finally:
        stop_event.set()
    return 0