"""
Command-Line Interface for tts-relay.

Administers the key store and voice cache without running the HTTP server,
and starts the server.

Usage Examples:
    # Create the data directory and an empty key store
    tts-relay init

    # Upstream credentials and custom keys
    tts-relay original-keys create P1 up_123 https://tts.example.com/api/tts
    tts-relay keys create mobile-app --rate-limit 500 --original-key <id>
    tts-relay keys list --json
    tts-relay keys link <key-id> <original-key-id>
    tts-relay keys status <key-id> disabled

    # Usage and voices
    tts-relay usage
    tts-relay voices refresh
    tts-relay voices stats

    # Run the server
    tts-relay serve --host 0.0.0.0 --port 8000

Global Options:
    --settings PATH   Settings file (default: TTS_RELAY_SETTINGS or config/settings.yaml)
    --data-dir DIR    Override storage.data_dir
    --json            Print JSON instead of text
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, List, Optional

from tts_relay.core.config import ConfigValidationError, Settings, load_settings_or_defaults
from tts_relay.core.logging import configure_logging, get_logger, info, set_request_id
from tts_relay.services.container import RelayServices
from tts_relay.services.errors import RelayError
from tts_relay.utils.clock import new_request_id


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="tts-relay", description="tts-relay administration")
    parser.add_argument("--settings", help="Settings file")
    parser.add_argument("--data-dir", help="Override storage.data_dir")
    parser.add_argument("--json", action="store_true", help="Print JSON output")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create the data directory and key store file")

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    keys = sub.add_parser("keys", help="Manage custom keys")
    keys_sub = keys.add_subparsers(dest="action", required=True)
    keys_list = keys_sub.add_parser("list")
    keys_list.add_argument("--full", action="store_true", help="Show full secrets")
    keys_create = keys_sub.add_parser("create")
    keys_create.add_argument("name")
    keys_create.add_argument("--rate-limit", type=int)
    keys_create.add_argument("--original-key", dest="original_key_id")
    keys_delete = keys_sub.add_parser("delete")
    keys_delete.add_argument("key_id")
    keys_link = keys_sub.add_parser("link", help="Link to an original key (omit to unlink)")
    keys_link.add_argument("key_id")
    keys_link.add_argument("original_key_id", nargs="?")
    keys_status = keys_sub.add_parser("status")
    keys_status.add_argument("key_id")
    keys_status.add_argument("status", choices=["active", "disabled"])

    originals = sub.add_parser("original-keys", help="Manage upstream credentials")
    originals_sub = originals.add_subparsers(dest="action", required=True)
    originals_sub.add_parser("list")
    originals_create = originals_sub.add_parser("create")
    originals_create.add_argument("name")
    originals_create.add_argument("api_key")
    originals_create.add_argument("endpoint")
    originals_delete = originals_sub.add_parser("delete")
    originals_delete.add_argument("key_id")

    sub.add_parser("usage", help="Show usage statistics")

    voices = sub.add_parser("voices", help="Voice catalog")
    voices_sub = voices.add_subparsers(dest="action", required=True)
    voices_sub.add_parser("refresh")
    voices_sub.add_parser("stats")

    return parser.parse_args(argv)


def _load_settings(args: argparse.Namespace) -> Settings:
    settings = load_settings_or_defaults(args.settings)
    if not args.data_dir:
        return settings
    raw = dict(settings.raw)
    storage = dict(raw.get("storage") or {})
    storage["data_dir"] = args.data_dir
    raw["storage"] = storage
    return Settings(raw=raw)


def _emit(args: argparse.Namespace, payload: Any, text: str) -> None:
    if args.json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(text)


def _run(args: argparse.Namespace, services: RelayServices) -> int:
    store = services.key_store

    if args.command == "init":
        path = store.init_storage()
        _emit(args, {"ok": True, "path": str(path)}, f"Key store ready at {path}")
        return 0

    if args.command == "keys":
        if args.action == "list":
            keys = store.list_custom_keys(masked=not args.full)
            lines = [
                f"{k['id']}  {k['name']:<20} {k['apiKey']:<36} {k['status']:<8} "
                f"used={k['usageCount']} original={k['originalKeyName'] or '-'}"
                for k in keys
            ]
            _emit(args, {"keys": keys}, "\n".join(lines) or "No API keys")
        elif args.action == "create":
            key = store.create_custom_key(args.name, args.rate_limit, args.original_key_id)
            _emit(args, {"key": key.to_dict()}, f"Created {key.name}: {key.api_key}")
        elif args.action == "delete":
            store.delete_custom_key(args.key_id)
            _emit(args, {"ok": True}, f"Deleted {args.key_id}")
        elif args.action == "link":
            key = store.link_original_key(args.key_id, args.original_key_id)
            _emit(args, {"key": key.to_dict()}, f"{key.name} -> {key.original_key_id or 'default upstream'}")
        elif args.action == "status":
            key = store.set_status(args.key_id, args.status)
            _emit(args, {"key": key.to_dict()}, f"{key.name} is {key.status}")
        return 0

    if args.command == "original-keys":
        if args.action == "list":
            keys = [k.to_dict() for k in store.list_original_keys()]
            lines = [f"{k['id']}  {k['name']:<20} {k['endpoint']}" for k in keys]
            _emit(args, {"keys": keys}, "\n".join(lines) or "No original API keys")
        elif args.action == "create":
            key = store.create_original_key(args.name, args.api_key, args.endpoint)
            _emit(args, {"key": key.to_dict()}, f"Created original key {key.name} ({key.id})")
        elif args.action == "delete":
            store.delete_original_key(args.key_id)
            _emit(args, {"ok": True}, f"Deleted original key {args.key_id}")
        return 0

    if args.command == "usage":
        stats = store.usage_stats()
        _emit(
            args,
            stats,
            f"keys={stats['totalKeys']} active={stats['activeKeys']} total_usage={stats['totalUsage']}",
        )
        return 0

    if args.command == "voices":
        if args.action == "refresh":
            voices = services.catalog.force_refresh()
            _emit(args, {"count": len(voices)}, f"Refreshed voice cache with {len(voices)} voices")
        elif args.action == "stats":
            stats = services.catalog.stats()
            _emit(args, stats, json.dumps(stats, indent=2, ensure_ascii=False))
        return 0

    return 2


def _serve(args: argparse.Namespace, settings: Settings) -> int:
    """Run uvicorn on an app built from the resolved settings (--settings, --data-dir)."""
    import uvicorn

    from tts_relay.main import create_app

    uvicorn.run(create_app(settings), host=args.host, port=args.port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        0 on success, 1 when an operation fails, 2 for bad configuration.
    """
    args = _parse_args(argv)

    try:
        settings = _load_settings(args)
        settings.get_relay_config()
    except ConfigValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    if args.command == "serve":
        return _serve(args, settings)

    # Under --json, stdout carries only the result document
    configure_logging(
        force=True,
        section=settings.raw.get("logging") or {},
        stream=sys.stderr if args.json else None,
    )
    log = get_logger("tts-relay.cli")
    set_request_id(new_request_id())
    services = RelayServices.from_settings(settings)

    try:
        info(log, "cli_command", command=args.command, action=getattr(args, "action", None))
        return _run(args, services)
    except RelayError as e:
        if args.json:
            print(json.dumps(e.to_dict(), ensure_ascii=False))
        else:
            print(f"Error: {e.message}", file=sys.stderr)
        return 1
    finally:
        services.close()


if __name__ == "__main__":
    raise SystemExit(main())
