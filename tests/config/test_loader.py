from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from catalog_harvester.config import ConfigLocator, ConfigRepository, FetchConfig, HarvesterConfig, SelectorTable
from catalog_harvester.config.loader import CONFIG_FILENAME, SELECTORS_FILENAME


def test_config_locator_uses_env_and_creates_directories(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("CATALOG_HARVESTER_HOME", str(tmp_path))
    locator = ConfigLocator()
    assert locator.project_root == tmp_path.resolve()
    assert locator.data_dir.exists()
    assert locator.logs_dir.exists()
    assert locator.config_path() == tmp_path.resolve() / "data" / CONFIG_FILENAME
    assert locator.selectors_path().name == SELECTORS_FILENAME


def test_missing_config_is_written_with_defaults(config_repository: ConfigRepository) -> None:
    config = config_repository.load_config()
    assert config == HarvesterConfig()
    path = config_repository.locator.config_path()
    assert path.exists()
    stored = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert stored["fetch"]["max_attempts"] == 3
    assert stored["discovery"]["flush_every"] == 3


def test_config_roundtrip_and_reload(config_repository: ConfigRepository) -> None:
    config = HarvesterConfig(fetch=FetchConfig(concurrency=2, jitter_range=(0.0, 0.1)))
    config_repository.save_config(config)
    config_repository.reload()
    loaded = config_repository.load_config()
    assert loaded == config


def test_hand_edited_yaml_is_validated(config_repository: ConfigRepository) -> None:
    path = config_repository.locator.config_path()
    path.write_text(
        yaml.safe_dump({"fetch": {"proxies": "10.0.0.1:80,10.0.0.2:80"}, "storage": {"database": "db/q.db"}}),
        encoding="utf-8",
    )
    config = config_repository.load_config()
    assert config.fetch.proxies == ["10.0.0.1:80", "10.0.0.2:80"]

    resolved = config_repository.resolved_config()
    assert resolved.storage.database == config_repository.locator.project_root / "db" / "q.db"


def test_selectors_default_and_persisted(config_repository: ConfigRepository) -> None:
    table = config_repository.load_selectors()
    assert config_repository.locator.selectors_path().exists()
    assert table.brand.selectors
    config_repository.reload()
    assert config_repository.load_selectors() == table


def test_config_file_must_hold_a_mapping(config_repository: ConfigRepository) -> None:
    config_repository.locator.config_path().write_text("- fetch\n- assets\n", encoding="utf-8")
    config_repository.reload()
    with pytest.raises(ValueError, match="mapping"):
        config_repository.load_config()


def test_empty_selectors_file_falls_back_to_defaults(config_repository: ConfigRepository) -> None:
    config_repository.locator.selectors_path().write_text("", encoding="utf-8")
    config_repository.reload()
    assert config_repository.load_selectors() == SelectorTable()
