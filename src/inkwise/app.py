"""Command-line entry point: connection tests, one-shot checks and settings inspection."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO

from .core.events import NoticePosted
from .editor.text_buffer import TextBufferEditor
from .engine import AssistantEngine
from .services.settings import Settings, SettingsStore, coerce_setting_value, redact_secret
from .utils import logging as logging_utils

_LOGGER = logging.getLogger(__name__)
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FAILURE_LEVELS = frozenset({"warning", "error"})

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure file logging; console output only when debugging."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, console=debug, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


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
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    for api_key in (settings.api_keys or {}).values():
        logging_utils.register_secret(api_key)
    return settings


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``inkwise`` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = args.debug or _env_flag("INKWISE_DEBUG")
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("INKWISE_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return EXIT_USAGE

    settings = load_settings(resolved_path, store=store, overrides=cli_overrides or None)
    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    if args.dump_settings:
        _dump_settings(settings, store, overrides=cli_overrides)
        return EXIT_OK

    if args.check or args.correct:
        source = Path(args.check or args.correct)
        try:
            text = source.read_text(encoding="utf-8")
        except OSError as exc:
            print(f"Cannot read {source}: {exc}", file=sys.stderr)
            return EXIT_USAGE
        if args.check:
            return asyncio.run(_run_check(settings, text, title=source.stem))
        return asyncio.run(_run_correct(settings, text, source, write=args.write))

    if args.list_models:
        return asyncio.run(_run_list_models(settings))

    if args.test_connection:
        return asyncio.run(_run_test_connection(settings))

    parser.print_help(sys.stderr)
    return EXIT_USAGE


async def _run_test_connection(settings: Settings) -> int:
    engine, _notices = _build_engine(settings)
    try:
        ok = await engine.test_api_connection()
    finally:
        await engine.shutdown()
    return EXIT_OK if ok else EXIT_FAILURE


async def _run_check(settings: Settings, text: str, *, title: str | None = None, stream: TextIO | None = None) -> int:
    if not _has_api_key(settings):
        return EXIT_FAILURE
    engine, notices = _build_engine(settings)
    editor = TextBufferEditor(text)
    engine.set_active_editor(editor, title=title)
    try:
        suggestions = await engine.check_grammar(editor)
    finally:
        await engine.shutdown()
    destination = stream or sys.stdout
    json.dump([item.as_dict() for item in suggestions], destination, indent=2, ensure_ascii=False)
    destination.write("\n")
    return EXIT_FAILURE if notices.failures else EXIT_OK


async def _run_correct(
    settings: Settings,
    text: str,
    source: Path,
    *,
    write: bool = False,
    stream: TextIO | None = None,
) -> int:
    if not _has_api_key(settings):
        return EXIT_FAILURE
    engine, notices = _build_engine(settings)
    editor = TextBufferEditor(text)
    try:
        changed = await engine.correct_document(editor)
    finally:
        await engine.shutdown()
    if notices.failures:
        return EXIT_FAILURE
    corrected = editor.get_value()
    if write:
        if changed:
            tmp_path = source.with_suffix(source.suffix + ".tmp")
            tmp_path.write_text(corrected, encoding="utf-8")
            tmp_path.replace(source)
            _LOGGER.info("Wrote corrected text to %s", source)
        return EXIT_OK
    (stream or sys.stdout).write(corrected)
    return EXIT_OK


async def _run_list_models(settings: Settings, stream: TextIO | None = None) -> int:
    engine, _notices = _build_engine(settings)
    provider = engine.current_provider()
    if provider is None:
        print(f"Unknown provider {settings.provider!r}", file=sys.stderr)
        return EXIT_USAGE
    try:
        models = await provider.list_models()
    finally:
        await engine.shutdown()
    destination = stream or sys.stdout
    for model in models:
        destination.write(f"{model.id}\t{model.name}\n")
    return EXIT_OK


class _NoticePrinter:
    """Writes engine notices to stderr and counts the ones that mean the run failed.

    A rate-limit warning counts: the one-shot request never completed.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream
        self.failures = 0

    def __call__(self, event: NoticePosted) -> None:
        if event.level in _FAILURE_LEVELS:
            self.failures += 1
        print(f"[{event.level}] {event.message}", file=self._stream or sys.stderr)


def _has_api_key(settings: Settings) -> bool:
    if settings.current_api_key():
        return True
    print(
        f"[error] No API key set for provider {settings.provider!r}; use --set api_keys=... or INKWISE_API_KEY",
        file=sys.stderr,
    )
    return False


def _build_engine(settings: Settings) -> tuple[AssistantEngine, _NoticePrinter]:
    engine = AssistantEngine(settings)
    notices = _NoticePrinter()
    engine.bus.subscribe(NoticePosted, notices)
    return engine, notices


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inkwise",
        description="AI grammar checking and writing assistance for plain-text documents.",
    )
    actions = parser.add_mutually_exclusive_group()
    actions.add_argument(
        "--test-connection",
        action="store_true",
        help="Send a short prompt to the configured provider and report the result.",
    )
    actions.add_argument("--check", metavar="FILE", help="Print grammar suggestions for FILE as JSON.")
    actions.add_argument("--correct", metavar="FILE", help="Print a grammar-corrected copy of FILE.")
    actions.add_argument("--list-models", action="store_true", help="List the provider's chat models.")
    actions.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument("--write", action="store_true", help="With --correct, rewrite FILE in place.")
    parser.add_argument(
        "--settings",
        dest="settings_path",
        metavar="PATH",
        help="Override the default ~/.inkwise/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level to the console too.")
    return parser


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    known = {item.name for item in fields(Settings)}
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip().replace("-", "_")
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in known:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = coerce_setting_value(key, raw_value.strip())
    return overrides


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_keys"] = {name: redact_secret(key) for name, key in (settings.api_keys or {}).items()}
    metadata = {
        "path": str(store.path),
        "secret_backend": store.vault.strategy,
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": sorted(name for name in os.environ if name.startswith("INKWISE_")),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2)
    destination.write("\n")


__all__ = ["configure_logging", "load_settings", "main"]
