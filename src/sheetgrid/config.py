"""Engine configuration loaded from ``sheetgrid.yaml``."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from babel import Locale, UnknownLocaleError

from sheetgrid.io.fileops import read_text_safe

CONFIG_FILENAME = "sheetgrid.yaml"
DEFAULT_HISTORY_LIMIT = 50


class GridConfig:
    """Tunable engine settings.

    ``history_limit`` caps retained undo entries, ``locale`` selects the Babel
    locale used for number and currency formatting, and ``events`` turns on
    NDJSON event output on stderr.
    """

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        data = data or {}
        limit = int(data.get("history_limit", DEFAULT_HISTORY_LIMIT))
        if limit < 1:
            raise ValueError(f"history_limit must be at least 1, got {limit}")
        locale = str(data.get("locale", "en_US"))
        try:
            Locale.parse(locale)
        except (ValueError, UnknownLocaleError) as e:
            raise ValueError(f"Unknown locale '{locale}': {e}") from e
        self.history_limit: int = limit
        self.locale: str = locale
        self.events: bool = bool(data.get("events", False))

    @classmethod
    def load(cls, path: str | Path) -> "GridConfig":
        """Load configuration from a YAML file."""
        text = read_text_safe(path)
        data = yaml.safe_load(text) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: configuration must be a mapping")
        return cls(data)

    @classmethod
    def load_from_dir(cls, directory: str | Path) -> "GridConfig | None":
        """Try to load sheetgrid.yaml from a directory. Returns None if not found."""
        path = Path(directory) / CONFIG_FILENAME
        if path.exists():
            return cls.load(path)
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"history_limit": self.history_limit, "locale": self.locale, "events": self.events}
