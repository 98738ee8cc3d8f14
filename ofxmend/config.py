"""YAML configuration loader for ofxmend.

Loads normalizer.yaml from the config/ directory. Every setting has a
built-in default, so a key may be left out of the file entirely.
"""

from pathlib import Path

import yaml

CONFIG_FILENAME = "normalizer.yaml"

DEFAULT_EMPTY_LEAF_TAGS = ["MEMO"]
DEFAULT_ENCODINGS = ["utf-8-sig", "cp1252"]
DEFAULT_MAX_FILE_SIZE_MB = 50
DEFAULT_WATCH_EXTENSIONS = [".ofx", ".qfx"]
DEFAULT_STABILITY_SECONDS = 10
DEFAULT_POLL_INTERVAL = 30


class Config:
    """Loads and provides access to normalizer.yaml."""

    def __init__(self, config_dir: Path | str = "config"):
        self.config_dir = Path(config_dir)
        if not self.config_dir.is_dir():
            raise FileNotFoundError(f"Config directory not found: {self.config_dir}")

        self._settings: dict | None = None

    def _load(self, filename: str) -> dict:
        path = self.config_dir / filename
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
        if data is None:
            raise ValueError(f"Empty config file: {path}")
        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping at the top of {path}")
        return data

    @property
    def settings(self) -> dict:
        if self._settings is None:
            self._settings = self._load(CONFIG_FILENAME)
        return self._settings

    @property
    def empty_leaf_tags(self) -> list[str]:
        """Leaf tags that exporters emit bare when their value is empty."""
        return [str(t) for t in self.settings.get("empty_leaf_tags", DEFAULT_EMPTY_LEAF_TAGS)]

    @property
    def encodings(self) -> list[str]:
        """Encodings tried, in order, when decoding raw file bytes."""
        return [str(e) for e in self.settings.get("encodings", DEFAULT_ENCODINGS)]

    @property
    def max_file_size(self) -> int:
        """Largest accepted file, in bytes."""
        mb = self.settings.get("max_file_size_mb", DEFAULT_MAX_FILE_SIZE_MB)
        return int(mb * 1024 * 1024)

    @property
    def watch(self) -> dict:
        return self.settings.get("watch") or {}

    @property
    def watch_extensions(self) -> set[str]:
        exts = self.watch.get("extensions", DEFAULT_WATCH_EXTENSIONS)
        return {e.lower() if e.startswith(".") else f".{e.lower()}" for e in exts}

    @property
    def stability_seconds(self) -> int:
        return int(self.watch.get("stability_seconds", DEFAULT_STABILITY_SECONDS))

    @property
    def poll_interval(self) -> int:
        return int(self.watch.get("poll_interval", DEFAULT_POLL_INTERVAL))
