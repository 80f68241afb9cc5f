"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import pytest

from tierboard.services.settings import SearchFlags, Settings, SettingsStore

_ENV_NAMES = (
    "TIERBOARD_BASE_URL",
    "TIERBOARD_STORAGE_DIR",
    "TIERBOARD_DEBUG_LOGGING",
    "TIERBOARD_REQUEST_TIMEOUT",
    "TIERBOARD_PERSISTENCE_DELAY",
    "TIERBOARD_SEARCH_DEBOUNCE",
    "TIERBOARD_HISTORY_LIMIT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    assert store.load() == Settings()


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    original = Settings(
        catalog_base_url="https://catalog.example/api",
        request_timeout=5.0,
        history_limit=25,
        storage_dir=str(tmp_path / "boards"),
        default_search_flags=SearchFlags(fuzzy=False, wildcard=True),
    )

    SettingsStore(path).save(original)
    reloaded = SettingsStore(path).load()

    assert reloaded == original
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1


def test_unknown_keys_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"history_limit": 10, "theme": "dark"}), encoding="utf-8")

    settings = SettingsStore(path).load()

    assert settings.history_limit == 10
    assert not hasattr(settings, "theme")


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{broken", encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_non_object_payload_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_malformed_flags_use_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"default_search_flags": {"fuzzy": False, "exact": True}}), encoding="utf-8")

    assert SettingsStore(path).load().default_search_flags == SearchFlags()


def test_cli_overrides_apply_before_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TIERBOARD_BASE_URL", "http://env/api")
    store = SettingsStore(tmp_path / "settings.json")

    settings = store.load(
        overrides={
            "catalog_base_url": "http://cli/api",
            "retry_attempts": 5,
            "default_search_flags": {"wildcard": False},
            "unknown": 1,
        }
    )

    assert settings.catalog_base_url == "http://env/api"
    assert settings.retry_attempts == 5
    assert settings.default_search_flags == SearchFlags(fuzzy=True, wildcard=False)


def test_typed_environment_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TIERBOARD_DEBUG_LOGGING", "yes")
    monkeypatch.setenv("TIERBOARD_REQUEST_TIMEOUT", "2.5")
    monkeypatch.setenv("TIERBOARD_HISTORY_LIMIT", "7")

    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings == replace(Settings(), debug_logging=True, request_timeout=2.5, history_limit=7)


def test_invalid_numeric_environment_is_ignored(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TIERBOARD_HISTORY_LIMIT", "many")
    monkeypatch.setenv("TIERBOARD_SEARCH_DEBOUNCE", "fast")

    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings.history_limit == 100
    assert settings.search_debounce == 0.3
