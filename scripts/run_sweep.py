"""Cron entry point running a single lifecycle sweep."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from src.deadmansdrop.config import load_config
from src.deadmansdrop.dependencies import build_sweep_context
from src.deadmansdrop.domain.models import utcnow
from src.deadmansdrop.logging import configure_logging

COMMANDS = ("distribution", "notifications", "expiration", "maintenance")


@dataclass(slots=True)
class SweepSummary:
    command: str
    dry_run: bool
    counters: dict[str, Any] = field(default_factory=dict)


def perform_sweep(
    command: str, *, dry_run: bool, reference_time: datetime | None = None
) -> SweepSummary:
    """Run (or, with ``dry_run``, only count) one sweep and summarise it."""
    context = build_sweep_context(load_config())
    now = reference_time or utcnow()

    if dry_run:
        if command == "distribution":
            due = context.video_repo.list_due_for_distribution(now)
            counters: dict[str, Any] = {"due": len(due)}
        elif command == "notifications":
            targets = context.video_repo.list_reminder_targets()
            counters = {
                "videos_found": len(targets),
                "without_token": sum(1 for target in targets if not target.push_token),
            }
        elif command == "expiration":
            due_expiry = context.video_repo.list_due_for_expiration(now)
            counters = {
                "due": len(due_expiry),
                "bytes": sum(video.file_size_bytes for video in due_expiry),
            }
        else:
            orphans = context.file_store.find_orphaned_files(context.video_repo.list_file_paths())
            counters = {"orphaned_files": len(orphans)}
        return SweepSummary(command=command, dry_run=True, counters=counters)

    if command == "distribution":
        counters = context.distribution(now).to_dict()
    elif command == "notifications":
        counters = context.notifications(now).to_dict()
    elif command == "expiration":
        counters = context.expiration(now).to_dict()
    else:
        counters = asdict(context.maintenance())
    return SweepSummary(command=command, dry_run=False, counters=counters)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run one video lifecycle sweep.")
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--dry-run", action="store_true", help="Only report what is due without changing anything.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    configure_logging()
    try:
        summary = perform_sweep(args.command, dry_run=args.dry_run)
    except Exception as exc:
        print(f"{args.command} sweep failed: {exc}", file=sys.stderr)
        return 2

    label = "dry-run" if summary.dry_run else "done"
    print(
        f"{summary.command} {label}: {json.dumps(summary.counters, default=str, sort_keys=True)}",
        file=sys.stdout,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
