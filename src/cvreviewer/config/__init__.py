"""Configuration management utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


class ConfigManager:
    """YAML-backed configuration loader rooted at a config directory."""

    def __init__(self, base_path: str | Path):
        self._base_path = Path(base_path)

    def resolve(self, name: str) -> Path:
        path = self._base_path / name
        return path if path.suffix else path.with_suffix(".yaml")

    def load(self, name: str) -> dict[str, Any]:
        """Load a YAML configuration by name, ``.yaml`` assumed when no extension is given.

        Missing or empty files yield an empty mapping so callers can fall
        back to model defaults.
        """
        path = self.resolve(name)
        if not path.exists():
            return {}
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config {path} must be a YAML mapping")
        return loaded


__all__ = ["ConfigManager"]
