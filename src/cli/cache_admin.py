# =============================================================================
# src/cli/cache_admin.py: Operator commands against the render cache
# =============================================================================
#
# Talks to the configured remote store (REDIS_URL / config/config.yaml)
# through the same provider the rendering host uses, so what you see here is
# what a render would see:
#
#   python -m src.cli get <key> --pathname /blog/[slug] --kind APP_PAGE
#   python -m src.cli set <key> '{"html": "..."}' --pathname /blog --revalidate 60 --tag posts
#   python -m src.cli revalidate-tag posts
#   python -m src.cli tag-members posts
#   python -m src.cli show-config
#
# Every command prints one JSON document on stdout.  Log output goes to
# stderr (WARNING+ unless --verbose), so stdout stays machine-readable.
# The in-memory tier is disabled here: a one-shot process has nothing to
# deduplicate and should always observe the remote store.
# =============================================================================

"""Operator CLI for inspecting and invalidating the render cache."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from src.config.loader import load_config, load_settings
from src.main import build_cache_runtime, create_cache_provider
from src.providers.cache.runtime import CacheRuntime
from src.utils.errors import ConfigurationError, RemoteStoreError
from src.utils.logging import configure_logging


def _emit(document: dict[str, Any]) -> None:
    print(json.dumps(document, indent=2, sort_keys=True, default=str))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, runtime: CacheRuntime) -> int:
    """Execute one parsed command against *runtime*; return the exit code."""
    provider = create_cache_provider(
        {"pathname": getattr(args, "pathname", ""), "kind": getattr(args, "kind", None)},
        runtime=runtime,
    )

    if args.command == "get":
        result = await provider.get(args.key)
        document: dict[str, Any] = {
            "key": provider.qualified_key(args.key),
            "hit": result is not None,
        }
        if result is not None:
            document["value"] = result.value
            document["last_modified"] = result.last_modified

    elif args.command == "set":
        try:
            payload = json.loads(args.value)
        except json.JSONDecodeError as exc:
            print(f"Error: VALUE is not valid JSON: {exc}", file=sys.stderr)
            return 2
        await provider.set(
            args.key, payload, {"revalidate": args.revalidate, "tags": args.tags}
        )
        document = {"key": provider.qualified_key(args.key), "tags": args.tags}

    elif args.command == "revalidate-tag":
        await provider.revalidate_tag(args.tags)
        document = {"revalidated": args.tags}

    elif args.command == "tag-members":
        try:
            members = await runtime.tag_index.members(args.tag)
        except RemoteStoreError as exc:
            runtime.recorder.record("tag_index.members", exc, tag=args.tag)
            members = []
        document = {"tag": args.tag, "members": members}

    else:  # pragma: no cover
        raise ValueError(f"Unknown command {args.command!r}")

    await runtime.drain()
    degradations = {k: v for k, v in runtime.recorder.snapshot().items() if v}
    document["degradations"] = degradations
    _emit(document)
    return 1 if degradations else 0


async def _run_with_configured_runtime(args: argparse.Namespace) -> int:
    settings = load_settings(args.config).model_copy(update={"redis_in_memory_caching": False})
    runtime = build_cache_runtime(settings)
    try:
        return await _run(args, runtime)
    finally:
        await runtime.aclose()


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def _add_scope_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--pathname", default="", help="Route pathname of the entry.")
    parser.add_argument(
        "--kind", default=None, help="Entry kind, e.g. APP_PAGE, APP_ROUTE or FETCH."
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.cli",
        description="Inspect and invalidate the render cache.",
    )
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="YAML config file (environment variables still override it).",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log at DEBUG instead of WARNING (to stderr).",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    get_cmd = commands.add_parser("get", help="Read one entry.")
    get_cmd.add_argument("key")
    _add_scope_arguments(get_cmd)

    set_cmd = commands.add_parser("set", help="Write one entry.")
    set_cmd.add_argument("key")
    set_cmd.add_argument("value", help="Payload as a JSON document.")
    set_cmd.add_argument(
        "--revalidate", type=float, default=None, help="Soft-stale age in seconds."
    )
    set_cmd.add_argument(
        "--tag", dest="tags", action="append", default=[], help="Tag (repeatable)."
    )
    _add_scope_arguments(set_cmd)

    revalidate_cmd = commands.add_parser(
        "revalidate-tag", help="Invalidate every entry written under the tags."
    )
    revalidate_cmd.add_argument("tags", nargs="+")

    members_cmd = commands.add_parser("tag-members", help="List the keys indexed under a tag.")
    members_cmd.add_argument("tag")

    commands.add_parser("show-config", help="Print the resolved configuration.")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point; exits 0 on success, 1 if the cache degraded, 2 on bad input."""
    args = _build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else "WARNING", stream=sys.stderr)

    try:
        if args.command == "show-config":
            _emit(load_config(args.config))
            sys.exit(0)
        sys.exit(asyncio.run(_run_with_configured_runtime(args)))
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
