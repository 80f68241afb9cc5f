"""Command-line entry point for inspecting and editing stored tier boards."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .board.session import BoardSession
from .media.registry import MediaRegistry
from .search.controller import SearchController
from .search.filters import SearchFilters
from .services.board_index import BoardIndex
from .services.catalog import CatalogClient, CatalogClientSettings
from .services.settings import Settings, SettingsStore
from .services.storage import JsonFileStorage, StorageBackend, board_key
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


def configure_logging(settings: Settings, *, debug: bool = False) -> None:
    """Route tierboard logs to ``<storage_dir>/logs`` and stderr."""

    log_path = logging_utils.setup_logging(settings, debug=debug)
    _LOGGER.debug("Logging configured (log file %s)", log_path)


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except Exception as exc:  # pragma: no cover
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def build_storage(settings: Settings) -> StorageBackend:
    root = Path(settings.storage_dir).expanduser() if settings.storage_dir else None
    return JsonFileStorage(root)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the `tierboard` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    settings_path = args.settings_path or os.environ.get("TIERBOARD_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return 0

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging(settings, debug=_env_flag("TIERBOARD_DEBUG", default=False))
    storage = build_storage(settings)
    return asyncio.run(_run_command(args, settings, storage))


async def _run_command(args: argparse.Namespace, settings: Settings, storage: StorageBackend) -> int:
    index = BoardIndex(storage)
    if args.command == "boards":
        return await _cmd_boards(index)
    if args.command == "create":
        board_id = await index.create_board(args.title, args.category)
        print(board_id)
        return 0
    if args.command == "export":
        return await _cmd_export(args.board_id, storage, settings)
    if args.command == "import":
        return await _cmd_import(args.board_id, Path(args.file), storage, index, settings)
    if args.command == "search":
        return await _cmd_search(args, settings)
    raise AssertionError(f"unhandled command {args.command!r}")  # pragma: no cover


async def _cmd_boards(index: BoardIndex) -> int:
    boards = await index.list_boards()
    if not boards:
        print("No boards yet.")
        return 0
    for meta in boards:
        print(f"{meta.id}\t{meta.title}\t{meta.category}\t{meta.item_count} item(s)")
    return 0


async def _cmd_export(board_id: str, storage: StorageBackend, settings: Settings) -> int:
    if await asyncio.to_thread(storage.read, board_key(board_id)) is None:
        print(f"Unknown board '{board_id}'", file=sys.stderr)
        return 1
    session = BoardSession(board_id, storage, MediaRegistry(), settings=settings)
    await session.start()
    try:
        print(json.dumps(session.export_data(), indent=2))
    finally:
        await session.aclose()
    return 0


async def _cmd_import(
    board_id: str,
    path: Path,
    storage: StorageBackend,
    index: BoardIndex,
    settings: Settings,
) -> int:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        print(f"Cannot read {path}: {exc}", file=sys.stderr)
        return 1
    registry = MediaRegistry(
        max_entries=settings.registry_max_entries, prune_count=settings.registry_prune_count
    )
    session = BoardSession(board_id, storage, registry, settings=settings, board_index=index)
    await session.start()
    try:
        if not session.import_json(text):
            print(f"{path} is not a valid tier list export", file=sys.stderr)
            return 1
    finally:
        await session.aclose()
    print(f"Imported {session.board.item_count} item(s) into '{session.board.title}'")
    return 0


async def _cmd_search(args: argparse.Namespace, settings: Settings) -> int:
    registry = MediaRegistry(
        max_entries=settings.registry_max_entries, prune_count=settings.registry_prune_count
    )
    async with CatalogClient(CatalogClientSettings.from_settings(settings)) as catalog:
        controller = SearchController(args.type, catalog, registry, settings=settings)
        controller.set_filters(SearchFilters().with_changes(query=args.query, page=max(1, args.page)))
        state = await controller.refresh()
        await controller.aclose()
    if state.error is not None:
        print(f"Search failed: {state.error}", file=sys.stderr)
        return 1
    for item in state.results:
        parts = [item.title]
        if item.artist:
            parts.append(item.artist)
        if item.year:
            parts.append(item.year)
        print(f"{item.id}\t" + " - ".join(parts))
    print(f"Page {state.page} of {max(state.total_pages, 1)}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tierboard",
        add_help=True,
        description="Manage locally stored tier boards and search the media catalog.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.tierboard/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("boards", help="List stored boards, most recently modified first.")
    create = commands.add_parser("create", help="Create an empty board and print its id.")
    create.add_argument("title")
    create.add_argument("--category", default="music")
    export = commands.add_parser("export", help="Print a board as an export document.")
    export.add_argument("board_id")
    importer = commands.add_parser("import", help="Replace a board with an export document.")
    importer.add_argument("board_id")
    importer.add_argument("file")
    search = commands.add_parser("search", help="Search the media catalog.")
    search.add_argument("query")
    search.add_argument("--type", choices=("album", "artist", "song"), default="album")
    search.add_argument("--page", type=int, default=1)
    return parser


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if normalized.lower() in {"none", "null"} and target is not bool:
        return None
    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if is_dataclass(target):
        try:
            payload = json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dataclass overrides must be valid JSON") from exc
        if isinstance(target, type) and isinstance(payload, dict):
            return target(**payload)
        raise ValueError("Dataclass overrides must be JSON objects")
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin in {list, dict}:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    output = {"settings": asdict(settings), "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("TIERBOARD_"))
