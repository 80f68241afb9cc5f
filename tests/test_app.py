"""Tests covering the command-line entry point."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from tierboard import app
from tierboard.board.io import dumps_export
from tierboard.services.catalog import CatalogClient
from tierboard.services.settings import SearchFlags, Settings

from helpers import make_board


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for name in ("TIERBOARD_DEBUG", "TIERBOARD_DEBUG_LOGGING", "TIERBOARD_BASE_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TIERBOARD_SETTINGS_PATH", str(tmp_path / "settings.json"))
    monkeypatch.setenv("TIERBOARD_STORAGE_DIR", str(tmp_path / "boards"))
    monkeypatch.setattr(app, "configure_logging", lambda *args, **kwargs: None)
    return tmp_path


def _fake_catalog(monkeypatch: pytest.MonkeyPatch, handler) -> None:
    def factory(settings: Any) -> CatalogClient:
        transport = httpx.MockTransport(handler)
        return CatalogClient(settings, client=httpx.AsyncClient(transport=transport, base_url="http://catalog/"))

    monkeypatch.setattr(app, "CatalogClient", factory)


def test_no_command_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert app.main([]) == 0

    assert "usage: tierboard" in capsys.readouterr().out


def test_create_then_list_boards(capsys: pytest.CaptureFixture[str]) -> None:
    assert app.main(["boards"]) == 0
    assert "No boards yet." in capsys.readouterr().out

    assert app.main(["create", "Albums of 1999", "--category", "music"]) == 0
    board_id = capsys.readouterr().out.strip()

    assert app.main(["boards"]) == 0
    listing = capsys.readouterr().out
    assert listing.startswith(board_id)
    assert "Albums of 1999\tmusic\t0 item(s)" in listing


def test_import_then_export(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    app.main(["create", "Target"])
    board_id = capsys.readouterr().out.strip()
    document = tmp_path / "export.json"
    document.write_text(dumps_export(make_board({"s": ["x", "y"]}, title="Imported")), encoding="utf-8")

    assert app.main(["import", board_id, str(document)]) == 0
    assert "Imported 2 item(s) into 'Imported'" in capsys.readouterr().out

    assert app.main(["export", board_id]) == 0
    exported = json.loads(capsys.readouterr().out)
    assert exported["title"] == "Imported"
    assert [item["id"] for item in exported["tiers"][0]["items"]] == ["x", "y"]

    assert app.main(["boards"]) == 0
    assert "2 item(s)" in capsys.readouterr().out


def test_import_rejects_invalid_document(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    app.main(["create", "Target"])
    board_id = capsys.readouterr().out.strip()
    document = tmp_path / "broken.json"
    document.write_text('{"tiers": 3}', encoding="utf-8")

    assert app.main(["import", board_id, str(document)]) == 1
    assert "not a valid tier list export" in capsys.readouterr().err
    assert app.main(["import", board_id, str(tmp_path / "missing.json")]) == 1


def test_export_unknown_board(capsys: pytest.CaptureFixture[str]) -> None:
    assert app.main(["export", "nope"]) == 1
    assert "Unknown board 'nope'" in capsys.readouterr().err


def test_search_prints_results(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "results": [
                    {"id": "a1", "type": "album", "title": "Thriller", "artist": "Michael Jackson", "year": "1982"}
                ],
                "page": 2,
                "totalPages": 2,
            },
        )

    _fake_catalog(monkeypatch, handler)

    assert app.main(["search", "thriller", "--page", "2"]) == 0

    out = capsys.readouterr().out
    assert "a1\tThriller - Michael Jackson - 1982" in out
    assert "Page 2 of 2" in out
    assert len(requests) == 1
    assert requests[0].url.params["query"] == "thriller"
    assert requests[0].url.params["page"] == "2"


def test_search_reports_failures(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    _fake_catalog(monkeypatch, lambda request: httpx.Response(400, json={"error": "Bad query"}))

    assert app.main(["search", "x", "--type", "song"]) == 1
    assert "Search failed: 400: Bad query" in capsys.readouterr().err


def test_dump_settings_reports_overrides(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = app.main(["--dump-settings", "--set", "history_limit=12", "--set", "debug_logging=off"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["settings"]["history_limit"] == 12
    assert payload["settings"]["storage_dir"] == str(tmp_path / "boards")
    assert payload["meta"]["path"] == str(tmp_path / "settings.json")
    assert payload["meta"]["cli_overrides"] == ["debug_logging", "history_limit"]
    assert "TIERBOARD_STORAGE_DIR" in payload["meta"]["environment_variables"]


def test_invalid_override_exits_with_usage_error(capsys: pytest.CaptureFixture[str]) -> None:
    assert app.main(["--set", "bogus=1", "boards"]) == 2
    assert "Unknown setting 'bogus'" in capsys.readouterr().err


def test_coerce_cli_overrides_handles_types() -> None:
    overrides = app._coerce_cli_overrides(
        [
            "request_timeout=2.5",
            "retry_attempts=4",
            "storage_dir=none",
            "catalog_base_url=http://catalog/api",
            'default_search_flags={"fuzzy": false}',
        ]
    )

    assert overrides == {
        "request_timeout": 2.5,
        "retry_attempts": 4,
        "storage_dir": None,
        "catalog_base_url": "http://catalog/api",
        "default_search_flags": SearchFlags(fuzzy=False),
    }


def test_coerce_cli_overrides_rejects_bad_values() -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides(["history_limit"])
    with pytest.raises(ValueError):
        app._coerce_cli_overrides(["debug_logging=maybe"])


def test_load_settings_reads_store(tmp_path: Path) -> None:
    path = tmp_path / "custom.json"
    path.write_text(json.dumps({"retry_attempts": 9}), encoding="utf-8")

    assert app.load_settings(path).retry_attempts == 9
    assert isinstance(app.load_settings(tmp_path / "absent.json"), Settings)
