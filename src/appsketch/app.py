"""Bootstrap helpers and the headless ``appsketch`` entry point.

``appsketch "<prompt>"`` builds the same controller stack an editor would
use, submits one prompt, waits for the generated images and prints the
resulting document snapshot as JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from openai import OpenAIError

from .ai.capability import OpenAIGenerationCapability
from .ai.client import AIClient, ClientSettings
from .editor.document_model import AppDocument
from .services.settings import Settings, SettingsStore, redact_secret
from .ui.editor_controller import EditorController
from .ui.models.editor_models import GenerationStatus
from .utils import logging as logging_utils

LOGGER = logging.getLogger(__name__)

_YES = frozenset({"1", "true", "yes", "on", "debug"})
_NO = frozenset({"0", "false", "no", "off", "disabled"})
_NULLS = frozenset({"none", "null"})

EXIT_OK = 0
EXIT_GENERATION_FAILED = 1
EXIT_USAGE = 2


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    log_path = logging_utils.setup_logging(logging.DEBUG if debug else logging.INFO, force=force)
    LOGGER.debug("Writing logs to %s (debug=%s)", log_path, debug)


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Resolve settings through ``store``; unreadable files yield defaults."""

    source = store if store is not None else SettingsStore(path)
    try:
        return source.load(overrides=overrides)
    except OSError as exc:
        LOGGER.warning("Could not read settings at %s (%s); using defaults", source.path, exc)
        return Settings()


def build_client(settings: Settings) -> AIClient:
    client_fields = {item.name for item in fields(ClientSettings)}
    values = {name: value for name, value in asdict(settings).items() if name in client_fields}
    values["default_headers"] = values.get("default_headers") or None
    return AIClient(ClientSettings(**values))


def build_controller(settings: Settings, client: AIClient) -> EditorController:
    """Wire the capability, store and controller for one editing session."""

    blank = AppDocument()
    document = AppDocument(
        app_name=(settings.default_app_name or "").strip() or blank.app_name,
        theme_color=(settings.default_theme_color or "").strip() or blank.theme_color,
    )
    capability = OpenAIGenerationCapability(client, temperature=settings.temperature)
    return EditorController.create(capability, document=document)


async def run_prompt(
    controller: EditorController,
    prompt: str,
    *,
    resolve_images: bool = True,
) -> bool:
    """Generate a layout for ``prompt``; True when it replaced the document.

    With ``resolve_images`` false the image run is canceled before its first
    request, so every image keeps its pending marker.
    """

    controller.set_prompt_text(prompt)
    record = await controller.submit_prompt()
    if record is None or record.status is not GenerationStatus.SUCCEEDED:
        return False
    generator = controller.generator
    if generator is not None:
        if not resolve_images:
            generator.cancel_image_resolution()
        await generator.wait_for_images()
    return True


def main(argv: Sequence[str] | None = None) -> int:
    """Console script entry point."""

    args = _build_parser().parse_args(list(argv) if argv is not None else None)
    debug = os.environ.get("APPSKETCH_DEBUG", "").strip().lower() in _YES
    configure_logging(debug)

    raw_path = args.settings_path or os.environ.get("APPSKETCH_SETTINGS_PATH")
    store = SettingsStore(Path(raw_path).expanduser() if raw_path else None)
    try:
        overrides = _coerce_cli_overrides(args.overrides or ())
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return EXIT_USAGE

    settings = load_settings(store=store, overrides=overrides or None)
    if args.dump_settings:
        _dump_settings(settings, store)
        return EXIT_OK
    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    if not (args.prompt or "").strip():
        print("A non-empty prompt is required.", file=sys.stderr)
        return EXIT_USAGE
    return asyncio.run(_run(settings, args.prompt, resolve_images=not args.no_images))


async def _run(settings: Settings, prompt: str, *, resolve_images: bool, stream: TextIO | None = None) -> int:
    try:
        client = build_client(settings)
    except OpenAIError as exc:
        print(f"Unable to configure the AI client: {exc}", file=sys.stderr)
        return EXIT_USAGE

    controller = build_controller(settings, client)
    sink = logging_utils.GenerationLogSink()
    sink.attach(controller.event_bus)
    try:
        installed = await run_prompt(controller, prompt, resolve_images=resolve_images)
    finally:
        await client.aclose()

    if not installed:
        print("Layout generation failed; see the log for details.", file=sys.stderr)
        return EXIT_GENERATION_FAILED
    out = stream or sys.stdout
    out.write(json.dumps(controller.document.snapshot(), indent=2))
    out.write("\n")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="appsketch",
        description="Generate a mobile app mockup layout from a prompt and print it as JSON.",
    )
    parser.add_argument("prompt", nargs="?", default="", help="description of the app to generate")
    parser.add_argument("--settings", dest="settings_path", metavar="PATH", help="settings JSON file to use")
    parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        metavar="KEY=VALUE",
        help="override one settings field for this run; repeatable",
    )
    parser.add_argument("--dump-settings", action="store_true", help="print the effective settings and exit")
    parser.add_argument("--no-images", action="store_true", help="leave image placeholders unresolved")
    return parser


def _coerce_cli_overrides(pairs: Sequence[str]) -> Dict[str, Any]:
    """Turn ``KEY=VALUE`` strings into typed :class:`Settings` overrides."""

    if not pairs:
        return {}
    hints = get_type_hints(Settings)
    overrides: Dict[str, Any] = {}
    for pair in pairs:
        name, sep, raw = pair.partition("=")
        name = name.strip()
        if not sep:
            raise ValueError(f"Override '{pair}' must use KEY=VALUE syntax.")
        if not name:
            raise ValueError("Override is missing a field name.")
        if name not in hints:
            raise ValueError(f"Unknown setting '{name}'.")
        overrides[name] = _coerce_value(hints[name], raw.strip())
    return overrides


def _coerce_value(annotation: Any, raw: str) -> Any:
    members = [arg for arg in get_args(annotation) if arg is not type(None)]
    nullable = len(members) < len(get_args(annotation))
    if nullable and raw.lower() in _NULLS:
        return None
    target = get_origin(annotation) or annotation
    if nullable and members:
        target = get_origin(members[0]) or members[0]

    if target is bool:
        lowered = raw.lower()
        if lowered in _YES or lowered in _NO:
            return lowered in _YES
        raise ValueError(f"Cannot coerce '{raw}' to a boolean.")
    if target is int:
        return int(raw, 10)
    if target is float:
        return float(raw)
    if target is dict:
        try:
            parsed = json.loads(raw or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError(f"Expected a JSON object, got {raw!r}") from exc
        if not isinstance(parsed, dict):
            raise ValueError(f"Expected a JSON object, got {raw!r}")
        return parsed
    return raw


def _dump_settings(settings: Settings, store: SettingsStore, *, stream: TextIO | None = None) -> None:
    snapshot = asdict(settings)
    snapshot["api_key"] = redact_secret(settings.api_key)
    snapshot["settings_path"] = str(store.path)
    out = stream or sys.stdout
    out.write(json.dumps(snapshot, indent=2, sort_keys=True))
    out.write("\n")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
