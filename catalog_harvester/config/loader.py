"""Configuration loading helpers for the harvester."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from .models import HarvesterConfig, SelectorTable

CONFIG_FILENAME = "harvester_config.yaml"
SELECTORS_FILENAME = "selectors.yaml"
HOME_ENV = "CATALOG_HARVESTER_HOME"


def _read_file(path: Path) -> dict:
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILENAME

    def selectors_path(self) -> Path:
        return self.data_dir / SELECTORS_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._config_cache: HarvesterConfig | None = None
        self._selectors_cache: SelectorTable | None = None

    # ------------------------------------------------------------------
    # Harvester configuration
    # ------------------------------------------------------------------
    def load_config(self) -> HarvesterConfig:
        if self._config_cache is not None:
            return self._config_cache
        path = self.locator.config_path()
        if path.exists():
            config = HarvesterConfig.model_validate(_read_file(path))
        else:
            config = HarvesterConfig()
            self.save_config(config)
        self._config_cache = config
        return config

    def save_config(self, config: HarvesterConfig) -> None:
        _write_file(self.locator.config_path(), config.model_dump(mode="json"))
        self._config_cache = config

    def resolved_config(self) -> HarvesterConfig:
        """Return the configuration with storage paths anchored at the project root."""

        config = self.load_config()
        storage = config.storage.resolve(self.locator.project_root)
        return config.model_copy(update={"storage": storage})

    # ------------------------------------------------------------------
    # Selector table
    # ------------------------------------------------------------------
    def load_selectors(self) -> SelectorTable:
        if self._selectors_cache is not None:
            return self._selectors_cache
        path = self.locator.selectors_path()
        if path.exists():
            table = SelectorTable.model_validate(_read_file(path))
        else:
            table = SelectorTable()
            self.save_selectors(table)
        self._selectors_cache = table
        return table

    def save_selectors(self, table: SelectorTable) -> None:
        _write_file(self.locator.selectors_path(), table.model_dump(mode="json"))
        self._selectors_cache = table

    def reload(self) -> None:
        self._config_cache = None
        self._selectors_cache = None


__all__ = ["ConfigLocator", "ConfigRepository", "CONFIG_FILENAME", "HOME_ENV", "SELECTORS_FILENAME"]
