"""Tests for sheetgrid.yaml configuration."""

from pathlib import Path

import pytest

from sheetgrid.config import CONFIG_FILENAME, DEFAULT_HISTORY_LIMIT, GridConfig


def test_defaults():
    cfg = GridConfig()
    assert cfg.history_limit == DEFAULT_HISTORY_LIMIT == 50
    assert cfg.locale == "en_US"
    assert cfg.events is False
    assert cfg.to_dict() == {"history_limit": 50, "locale": "en_US", "events": False}


def test_overrides():
    cfg = GridConfig({"history_limit": "5", "locale": "de_DE", "events": True})
    assert cfg.history_limit == 5
    assert cfg.locale == "de_DE"
    assert cfg.events is True


@pytest.mark.parametrize("limit", [0, -3])
def test_history_limit_must_be_positive(limit: int):
    with pytest.raises(ValueError, match="history_limit"):
        GridConfig({"history_limit": limit})


def test_unknown_locale():
    with pytest.raises(ValueError, match="Unknown locale"):
        GridConfig({"locale": "xx_NOPE"})


def test_load(tmp_path: Path):
    path = tmp_path / "custom.yaml"
    path.write_text("history_limit: 3\nevents: true\n")
    cfg = GridConfig.load(path)
    assert cfg.history_limit == 3
    assert cfg.events is True


def test_load_empty_file(tmp_path: Path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert GridConfig.load(path).history_limit == 50


def test_load_rejects_non_mapping(tmp_path: Path):
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ValueError, match="must be a mapping"):
        GridConfig.load(path)


def test_load_from_dir(tmp_path: Path):
    assert GridConfig.load_from_dir(tmp_path) is None
    (tmp_path / CONFIG_FILENAME).write_text("locale: fr_FR\n")
    cfg = GridConfig.load_from_dir(tmp_path)
    assert cfg is not None
    assert cfg.locale == "fr_FR"
