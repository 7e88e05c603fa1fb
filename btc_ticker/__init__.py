"""Desktop ticker for Bitcoin price, charts, block height and fee estimates."""

__version__ = "0.1.0"