"""Summary: Command-line interface for MyBrain.

Importance: Provides a local-first entry point for summaries and sync without the API.
Alternatives: Drive everything through the HTTP API.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import asdict
from typing import Any

from mybrain.app import AppContext, build_context
from mybrain.config import AppConfig
from mybrain.models import Source


SOURCE_CHOICES = [source.value for source in Source]
FILTER_CHOICES = ["all", "today", "week", "month"]


def build_parser() -> argparse.ArgumentParser:
    """Summary: Declare the mybrain subcommands and their flags.

    Importance: Summaries, syncs and stats are all reachable from a shell.
    Alternatives: Use Click subcommand groups.
    """

    parser = argparse.ArgumentParser(description="MyBrain CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    summary = subparsers.add_parser("summary", help="Show an AI summary for one source")
    summary.add_argument("source", choices=SOURCE_CHOICES)
    summary.add_argument("kind", choices=["today", "week", "actions"])
    summary.add_argument("--force", action="store_true", help="Ignore the cache")

    combined = subparsers.add_parser("combined", help="Show the combined daily summary")
    combined.add_argument("--force", action="store_true", help="Ignore the cache")

    all_views = subparsers.add_parser("all", help="Show live views for every source")
    all_views.add_argument("--filter", choices=FILTER_CHOICES, default="all")

    live = subparsers.add_parser("live", help="Show the live view for one source")
    live.add_argument("source", choices=SOURCE_CHOICES)
    live.add_argument("--filter", choices=FILTER_CHOICES, default="all")

    sync = subparsers.add_parser("sync", help="Sync sources into the local store")
    sync.add_argument("source", choices=SOURCE_CHOICES + ["all"])
    sync.add_argument("--full", action="store_true", help="Resync the whole window")

    records = subparsers.add_parser("records", help="List stored records")
    records.add_argument("source", choices=SOURCE_CHOICES)
    records.add_argument("--filter", choices=FILTER_CHOICES, default="all")
    records.add_argument("--limit", type=int, default=20)

    subparsers.add_parser("stats", help="Show stored record counts")

    reset = subparsers.add_parser("reset", help="Disconnect a source and forget its watermark")
    reset.add_argument("source", choices=SOURCE_CHOICES)
    return parser


def run_cli(argv: list[str] | None = None) -> None:
    """Summary: Dispatch a parsed command against a fresh AppContext.

    Importance: Drives the local workflow without a UI.
    Alternatives: Invoke services via the HTTP API.
    """

    parser = build_parser()
    args = parser.parse_args(argv)
    config = AppConfig.from_env()
    logging.basicConfig(level=config.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(_run(args, config))


async def _run(args: argparse.Namespace, config: AppConfig) -> None:
    context = build_context(config)
    try:
        await _dispatch(args, context)
    finally:
        await context.aclose()


async def _dispatch(args: argparse.Namespace, context: AppContext) -> None:
    if args.command == "summary":
        response = await context.summaries.get_summary(args.source, args.kind, force_refresh=args.force)
        _print_summary(response.to_dict())
        return

    if args.command == "combined":
        response = await context.aggregator.get_combined_summary(force_refresh=args.force)
        _print_summary(response.to_dict())
        return

    if args.command == "all":
        _print_json(await context.aggregator.get_all_summaries(args.filter))
        return

    if args.command == "live":
        view = await context.adapters[Source.parse(args.source)].get_summary(args.filter)
        _print_json(view.to_dict())
        return

    if args.command == "sync":
        sources = list(Source) if args.source == "all" else [Source.parse(args.source)]
        for source in sources:
            result = await context.adapters[source].sync_to_database(full_sync=args.full)
            if result.success:
                mode = "incremental" if result.is_incremental else "full"
                print(
                    f"{source.value}: stored {result.new_count} new records "
                    f"({result.total_checked} checked, {mode})."
                )
            else:
                print(f"{source.value}: sync failed: {result.error}")
        return

    if args.command == "records":
        stored = context.store.query(Source.parse(args.source), args.filter, limit=args.limit)
        for record in stored:
            _print_json(asdict(record))
        return

    if args.command == "stats":
        for source, count in context.store.stats().items():
            print(f"{source}: {count}")
        return

    if args.command == "reset":
        context.adapters[Source.parse(args.source)].disconnect()
        print(f"Reset {args.source}.")
        return


def _print_summary(data: dict[str, Any]) -> None:
    if "error" in data:
        print(f"Error: {data['error']}")
        return
    header = "cached" if data.get("from_cache") else "fresh"
    if data.get("is_stale"):
        header += ", stale; refreshing in background"
    if data.get("date_range"):
        header += f", {data['date_range']}"
    print(f"[{header}]")
    print(data["summary"])


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


if __name__ == "__main__":
    run_cli()
