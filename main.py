"""CLI entrypoint for ingestion runs, due-checks, key status and live search."""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import List, Optional

from rich.table import Table

from config import get_settings
from orchestrator import IngestionScheduler, build_default_coordinator
from storage import InMemorySubjectStore
from utils.exceptions import CuratorError
from utils.logger import configure_package_loggers, console


def _subject_store(args) -> InMemorySubjectStore:
    if getattr(args, "subjects_file", ""):
        return InMemorySubjectStore.from_file(args.subjects_file)
    names = [item.strip() for item in str(getattr(args, "subjects", "") or "").split(",") if item.strip()]
    return InMemorySubjectStore.from_names(names)


def _keys_table(coordinator) -> Table:
    table = Table(title="News API keys", show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("Valid", style="green")
    table.add_column("Rate limited", style="yellow")
    table.add_column("Health", style="magenta")
    table.add_column("Requests", style="white")
    table.add_column("Cooldown until", style="dim")
    for record in coordinator.key_manager.statuses():
        table.add_row(
            record.key_id,
            "yes" if record.is_valid else "no",
            "yes" if record.is_rate_limited else "no",
            str(record.health_score),
            f"{record.successful_requests}/{record.total_requests}",
            record.cooldown_until.isoformat(timespec="seconds") if record.cooldown_until else "-",
        )
    return table


def _articles_table(title: str, articles) -> Table:
    table = Table(title=title, show_header=True)
    table.add_column("Score", style="green")
    table.add_column("Type", style="cyan")
    table.add_column("Published", style="dim")
    table.add_column("Source", style="yellow")
    table.add_column("Title", style="white")
    for article in articles:
        table.add_row(
            str(article.overall_score),
            article.content_type,
            article.published_at.isoformat(timespec="minutes") if article.published_at else "-",
            article.source_domain or article.source_name,
            article.title,
        )
    return table


async def _run(args) -> int:
    coordinator = build_default_coordinator(subject_store=_subject_store(args))
    try:
        return await _dispatch(args, coordinator)
    finally:
        await coordinator.fetcher.scraper.close()


async def _dispatch(args, coordinator) -> int:
    if args.command == "run":
        result = await coordinator.run_ingestion()
        print(json.dumps(result.model_dump(mode="json"), ensure_ascii=False))
        return 0 if result.success else 1

    if args.command == "due":
        print(json.dumps({"due": coordinator.is_run_due()}, ensure_ascii=False))
        return 0

    if args.command == "keys":
        if args.check:
            await coordinator.key_manager.force_health_check()
        console.print(_keys_table(coordinator))
        console.print(coordinator.key_manager.health_summary())
        return 0

    if args.command == "live-search":
        articles = await coordinator.live_search(args.name, limit=args.limit)
        console.print(_articles_table(f"Live search: {args.name}", articles))
        return 0

    if args.command == "serve":
        scheduler = IngestionScheduler.from_settings(get_settings(), coordinator)
        await scheduler.start()
        return 0

    return 2


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Celebrity news ingestion CLI")
    parser.add_argument("--subjects", default="", help="comma-separated subject names")
    parser.add_argument("--subjects-file", default="", help="JSON list of names or subject objects")
    parser.add_argument("--log-level", default="")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run")
    sub.add_parser("due")

    keys = sub.add_parser("keys")
    keys.add_argument("--check", action="store_true", help="force a health check first")

    live = sub.add_parser("live-search")
    live.add_argument("name")
    live.add_argument("--limit", type=int, default=20)

    sub.add_parser("serve")

    args = parser.parse_args(argv)
    settings = get_settings()
    configure_package_loggers(
        level=args.log_level or settings.log.level,
        log_file=settings.log.file,
        use_rich=settings.log.use_rich,
    )

    try:
        return asyncio.run(_run(args))
    except CuratorError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
