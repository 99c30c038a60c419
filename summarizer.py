from __future__ import annotations

import argparse
import sys
from datetime import datetime, time, timedelta

from screenlog.analysis import build_analyzer
from screenlog.config import get_settings
from screenlog.logging_utils import init_logger
from screenlog.notes import ObsidianNotes
from screenlog.storage import ActivityStore
from screenlog.summary import SummarizationFailed, SummaryAggregator, write_summary_file


def resolve_window(now: datetime, *, minutes: int | None = None, date: str | None = None) -> tuple[datetime, datetime]:
    """Return the [start, end) window for a trailing number of minutes or a whole day."""
    if date:
        day = datetime.strptime(date, "%Y-%m-%d").date()
        start = datetime.combine(day, time.min, tzinfo=now.tzinfo)
        return start, start + timedelta(days=1)
    return now - timedelta(minutes=minutes or 60), now


def main() -> int:
    parser = argparse.ArgumentParser(description="Summarize logged screen activity for a time window")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--minutes", type=int, help="Trailing window length (defaults to SUMMARY_INTERVAL_MINUTES)")
    group.add_argument("--date", help="Whole day YYYY-MM-DD")
    parser.add_argument("--notes", action="store_true", help="Also append the summary to the Obsidian daily note")
    parser.add_argument("--save", action="store_true", help="Also append the summary to SUMMARY_OUTPUT_DIR")
    args = parser.parse_args()

    try:
        settings = get_settings()
    except RuntimeError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    logger = init_logger("summarizer", settings.logging.directory, settings.logging.level)

    now = datetime.now(tz=settings.timezone)
    start, end = resolve_window(now, minutes=args.minutes or settings.summary.interval_minutes, date=args.date)

    store = ActivityStore(settings.storage.activity_dir, settings.timezone, logger)
    aggregator = SummaryAggregator(build_analyzer(settings, logger), logger, settings.timezone)
    try:
        summary = aggregator.summarize_window(store, start, end)
    except SummarizationFailed as exc:
        logger.error("%s", exc)
        return 1

    print(summary.render_markdown())

    if args.save:
        path = write_summary_file(settings.storage.summary_dir, summary, settings.timezone)
        logger.info("Summary saved to %s", path)
    if args.notes:
        ObsidianNotes(settings.notes.vault_name, settings.timezone, logger).append(f"【まとめ】{summary.text}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
