"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from tifflocator.config import (
    ConfigError,
    ConfigManager,
    TiffLocatorConfig,
    flatten_for_env,
    parse_env,
    resolve_with_precedence,
)


def _fresh_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    monkeypatch.setenv("HOME", str(tmp_path))
    return ConfigManager()


def test_ensure_exists_creates_default_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    path = manager.ensure_exists()

    assert path == tmp_path / ".tifflocator" / "config.yaml"
    text = path.read_text(encoding="utf-8")
    assert "TiffLocator configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, TiffLocatorConfig)
    assert config.search.default_threshold == pytest.approx(0.7)
    assert config.search.page_size == 500
    assert config.scan.extensions == [".tif", ".tiff"]


def test_resolve_with_precedence_respects_order(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.save({"search": {"page_size": 50}, "references": {"id_field": "record_id"}})

    env = {
        "TIFFLOCATOR__SEARCH__DEFAULT_THRESHOLD": "0.9",
        "TIFFLOCATOR__REFERENCES__ID_FIELD": "env_id",
    }
    cli = {"search.default_threshold": 0.8}

    config = manager.load(cli_overrides=cli, env_overrides=env)

    assert config.search.page_size == 50
    # Environment beats the file, CLI beats the environment.
    assert config.references.id_field == "env_id"
    assert config.search.default_threshold == pytest.approx(0.8)


def test_invalid_yaml_raises_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_flatten_for_env_round_trips_defaults() -> None:
    flat = flatten_for_env(TiffLocatorConfig())

    assert flat["TIFFLOCATOR__SEARCH__PAGE_SIZE"] == "500"
    assert flat["TIFFLOCATOR__REFERENCES__ID_FIELD"] == "hh_id"

    rebuilt = resolve_with_precedence(defaults=TiffLocatorConfig(), env_overrides=parse_env(flat))
    assert rebuilt == TiffLocatorConfig()


def test_extensions_are_normalized() -> None:
    config = resolve_with_precedence(
        defaults=TiffLocatorConfig(),
        file_overrides={"scan": {"extensions": ["TIF", ".Tiff", "tif"]}},
    )

    assert config.scan.extensions == [".tif", ".tiff"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"search": {"default_threshold": 0.4}},
        {"search": {"default_threshold": 1.5}},
        {"search": {"page_size": 0}},
        {"scan": {"extensions": []}},
        {"scan": {"unknown": True}},
    ],
)
def test_resolve_with_precedence_invalid_value_raises(overrides: dict) -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(defaults=TiffLocatorConfig(), file_overrides=overrides)
