"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

__all__ = [
    "Settings",
    "SettingsStore",
    "SearchFlags",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".tierboard"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "TIERBOARD_BASE_URL": "catalog_base_url",
    "TIERBOARD_STORAGE_DIR": "storage_dir",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "TIERBOARD_DEBUG_LOGGING": "debug_logging",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "TIERBOARD_REQUEST_TIMEOUT": "request_timeout",
    "TIERBOARD_PERSISTENCE_DELAY": "persistence_delay",
    "TIERBOARD_SEARCH_DEBOUNCE": "search_debounce",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "TIERBOARD_HISTORY_LIMIT": "history_limit",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class SearchFlags:
    """Matching-mode flags forwarded to the catalog search endpoint."""

    fuzzy: bool = True
    wildcard: bool = True


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    catalog_base_url: str = "http://localhost:3000/api"
    request_timeout: float = 15.0
    retry_attempts: int = 3
    retry_wait_seconds: float = 2.0
    persistence_delay: float = 0.5
    metadata_sync_delay: float = 1.0
    search_debounce: float = 0.3
    search_cache_ttl: float = 60.0
    search_cache_max_entries: int = 200
    enrichment_concurrency: int = 3
    history_limit: int = 100
    registry_max_entries: int = 2000
    registry_prune_count: int = 200
    storage_dir: str | None = None
    debug_logging: bool = False
    default_search_flags: SearchFlags = field(default_factory=SearchFlags)


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()

        if payload:
            data = _filter_fields(payload)
            flags_payload = data.get("default_search_flags")
            if isinstance(flags_payload, Mapping):
                try:
                    data["default_search_flags"] = SearchFlags(**flags_payload)
                except TypeError:
                    data["default_search_flags"] = SearchFlags()
            elif "default_search_flags" in data:
                data["default_search_flags"] = SearchFlags()
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
        LOGGER.debug("Settings loaded from %s (%d stored keys)", self._path, len(payload))

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")

        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload = asdict(settings)
        payload["version"] = _SETTINGS_VERSION
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            payload = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        flags_override = filtered.get("default_search_flags")
        if isinstance(flags_override, Mapping):
            current = asdict(settings.default_search_flags)
            current.update({k: bool(v) for k, v in flags_override.items() if k in current})
            filtered["default_search_flags"] = SearchFlags(**current)
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid integer",
                    env_name,
                    value,
                )
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid float", env_name, value
                )
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)}
    return {key: value for key, value in payload.items() if key in allowed}
