"""Cron entry point for removing orphaned frame and artifact files."""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from datetime import datetime

from framerender.config import load_config
from framerender.dependencies import orphan_max_age_seconds
from framerender.lifecycle import sweep_orphans_once


@dataclass(slots=True)
class CleanupSummary:
    frames_removed: int
    artifacts_removed: int
    dry_run: bool


def perform_cleanup(
    *,
    dry_run: bool,
    max_age_seconds: float | None = None,
    reference_time: datetime | None = None,
) -> CleanupSummary:
    """Sweep both media directories and return summary counters."""
    config = load_config()
    max_age = (
        max_age_seconds if max_age_seconds is not None else orphan_max_age_seconds(config)
    )
    removed = sweep_orphans_once(
        media_paths=config.media_paths,
        artifacts=None,
        max_age_seconds=max_age,
        now=reference_time,
        dry_run=dry_run,
    )
    frames_dir = config.media_paths.frames
    frames_removed = sum(1 for path in removed if path.parent == frames_dir)
    return CleanupSummary(
        frames_removed=frames_removed,
        artifacts_removed=len(removed) - frames_removed,
        dry_run=dry_run,
    )


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Remove orphaned render files.")
    parser.add_argument("--dry-run", action="store_true", help="Only report counts without deleting files.")
    parser.add_argument(
        "--max-age",
        type=float,
        default=None,
        help="Minimum file age in seconds (defaults to TTL + encoder timeout + 60).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or [])
    try:
        summary = perform_cleanup(dry_run=args.dry_run, max_age_seconds=args.max_age)
    except Exception as exc:
        print(f"cleanup failed: {exc}", file=sys.stderr)
        return 2

    verb = "dry-run" if summary.dry_run else "done"
    print(
        f"cleanup {verb}, frames={summary.frames_removed}, artifacts={summary.artifacts_removed}",
        file=sys.stdout,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
