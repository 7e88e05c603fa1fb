"""Persistent application settings stored as JSON in the user config directory."""

from __future__ import annotations

import json
import logging
from contextlib import suppress
from dataclasses import asdict, dataclass
from pathlib import Path

import platformdirs

from .mempool_client import DEFAULT_MEMPOOL_API_URL

logger = logging.getLogger(__name__)

APP_NAME = "btc-ticker"
CONFIG_FILE_NAME = "config.json"


def default_config_path() -> Path:
    """Return the config file path, creating its directory if needed."""
    directory = Path(platformdirs.user_config_path(APP_NAME, appauthor=False, roaming=True))
    with suppress(OSError):
        directory.mkdir(parents=True, exist_ok=True)
    return directory / CONFIG_FILE_NAME


@dataclass
class AppConfig:
    """User-adjustable settings."""

    mempool_custom_url_enabled: bool = False
    mempool_api_url: str = DEFAULT_MEMPOOL_API_URL

    @classmethod
    def _from_json(cls, text: str) -> AppConfig:
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")
        if "mempool_custom_url_enabled" not in data:
            raise ValueError("missing field `mempool_custom_url_enabled`")
        if "mempool_api_url" not in data:
            raise ValueError("missing field `mempool_api_url`")
        enabled = data["mempool_custom_url_enabled"]
        url = data["mempool_api_url"]
        if not isinstance(enabled, bool):
            raise ValueError("invalid type for `mempool_custom_url_enabled`: expected a boolean")
        if not isinstance(url, str):
            raise ValueError("invalid type for `mempool_api_url`: expected a string")
        return cls(mempool_custom_url_enabled=enabled, mempool_api_url=url)

    @classmethod
    def load(cls, path: str | Path | None = None) -> AppConfig:
        """Read the config file; on absence or error, write and return the defaults."""
        config_path = Path(path) if path is not None else default_config_path()
        if config_path.exists():
            try:
                content = config_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.error("Error reading config file: %s", exc)
            else:
                try:
                    return cls._from_json(content)
                except ValueError as exc:
                    logger.error("Error parsing config file: %s", exc)

        config = cls()
        with suppress(OSError):
            config.save(config_path)
        return config

    def save(self, path: str | Path | None = None) -> None:
        """Write the settings as pretty-printed JSON; raises OSError on failure."""
        config_path = Path(path) if path is not None else default_config_path()
        config_path.write_text(json.dumps(asdict(self), indent=2), encoding="utf-8")