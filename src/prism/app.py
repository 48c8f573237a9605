"""Terminal host for the Prism request assistant."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

import httpx

from .ai.errors import CompletionTransportError
from .ai.tools.formatting import format_request_for_ai
from .chat.session import ChatSession, build_session
from .requests.model import HTTP_METHODS, Request
from .requests.store import RequestStore
from .services.settings import Settings, SettingsStore
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_LOGGER = logging.getLogger(__name__)
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_PROMPT = "you> "


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure structured logging for the application."""

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
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `prism-chat` console script."""

    args = _parse_cli_args(argv)

    debug = bool(args.debug) or _env_flag("PRISM_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("PRISM_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    overrides_mapping: Dict[str, Any] | None = cli_overrides or None
    settings = load_settings(resolved_path, store=settings_store, overrides=overrides_mapping)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return

    if settings.debug_logging or settings.log_dir:
        log_path = logging_utils.setup_logging_for(settings, debug=debug, force=True)
        debug = debug or settings.debug_logging
        _LOGGER.debug("Logging reconfigured from settings (path=%s)", log_path)

    store = RequestStore(Request(method=args.method, url=args.url or ""))
    session = build_session(settings, store, debug_logging=debug)
    try:
        asyncio.run(run_repl(session, store))
    except KeyboardInterrupt:
        _LOGGER.info("Shutdown requested by user.")


async def run_repl(
    session: ChatSession,
    store: RequestStore,
    *,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> None:
    """Read prompts line by line and stream the assistant's answers."""

    source = stdin or sys.stdin
    sink = stdout or sys.stdout

    def _on_delta(fragment: str, snapshot: str) -> None:
        sink.write(fragment)
        sink.flush()

    def _on_tool_call(name: str, arguments: Dict[str, Any]) -> None:
        sink.write(f"\n[tool] {name} {json.dumps(arguments, ensure_ascii=False)}\n")
        sink.flush()

    try:
        while True:
            sink.write(_PROMPT)
            sink.flush()
            line = await asyncio.to_thread(source.readline)
            if not line:
                break
            text = line.strip()
            if not text:
                continue
            if text == "/quit":
                break
            if text == "/clear":
                session.clear()
                sink.write("History cleared.\n")
                continue
            if text == "/request":
                json.dump(format_request_for_ai(store.get_request()), sink, indent=2)
                sink.write("\n")
                continue

            sink.write("prism> ")
            try:
                await session.send(text, on_delta=_on_delta, on_tool_call=_on_tool_call)
            except (CompletionTransportError, httpx.HTTPError) as exc:
                _LOGGER.warning("Completion failed: %s", exc)
                sink.write(f"\nError: {exc}\n")
                continue
            sink.write("\n")
    finally:
        await session.aclose()


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="prism-chat",
        add_help=True,
        description="Chat with the request assistant about an in-memory HTTP request.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.prism/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings before launch (repeatable).",
    )
    parser.add_argument(
        "--method",
        choices=HTTP_METHODS,
        default="GET",
        help="Initial method of the request being edited.",
    )
    parser.add_argument("--url", default="", help="Initial URL of the request being edited.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


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

    if _is_optional(annotation) and normalized.lower() in {"none", "null"}:
        return None
    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if target is dict:
        try:
            payload = json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
        if not isinstance(payload, dict):
            raise ValueError("Dict overrides must be valid JSON objects")
        return payload
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


def _is_optional(annotation: Any) -> bool:
    return type(None) in get_args(annotation)


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
    payload = asdict(settings)
    headers = payload.get("default_headers") or {}
    payload["default_headers"] = {key: _redact_secret(str(value)) for key, value in headers.items()}
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    output = {"settings": payload, "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _redact_secret(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("PRISM_") or name == "OPENAI_MODEL")


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
