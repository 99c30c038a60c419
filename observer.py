from __future__ import annotations

import argparse
import os
import sys

from screenlog.activity import IdleDetector
from screenlog.analysis import build_analyzer
from screenlog.apps import ApplicationEnumerator
from screenlog.capture import ImageOptimizer, ScreenshotProvider
from screenlog.config import get_settings
from screenlog.logging_utils import init_logger
from screenlog.notes import ObsidianNotes
from screenlog.orchestrator import CaptureOrchestrator
from screenlog.scheduler import SummaryScheduler
from screenlog.storage import ActivityStore
from screenlog.summary import SummaryAggregator


def build_orchestrator(settings, logger, *, ignore_idle: bool = False, skip_notes: bool = False, skip_summary: bool = False) -> CaptureOrchestrator:
    store = ActivityStore(settings.storage.activity_dir, settings.timezone, logger)
    analyzer = build_analyzer(settings, logger)
    return CaptureOrchestrator(
        idle_detector=IdleDetector(settings.capture.idle_threshold_minutes, logger),
        store=store,
        screenshots=ScreenshotProvider(settings.capture.screenshots_dir, settings.timezone, logger),
        optimizer=ImageOptimizer(logger, settings.capture.image_max_width, settings.capture.image_quality),
        apps=ApplicationEnumerator(logger),
        analyzer=analyzer,
        notes=ObsidianNotes(settings.notes.vault_name, settings.timezone, logger),
        scheduler=SummaryScheduler(settings.storage.checkpoint_path, settings.summary.interval_minutes, logger),
        aggregator=SummaryAggregator(analyzer, logger, settings.timezone),
        log=logger,
        timezone=settings.timezone,
        summary_dir=settings.storage.summary_dir,
        ignore_idle=ignore_idle,
        skip_notes=skip_notes,
        skip_summary=skip_summary,
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Capture the screen once, describe it and log the activity")
    parser.add_argument("--screenshots-dir", default=None, help="Override SCREENSHOTS_DIR")
    parser.add_argument("--activity-dir", default=None, help="Override ACTIVITY_LOG_DIR")
    parser.add_argument("--ignore-idle", action="store_true", help="Capture even when the user is idle")
    parser.add_argument("--skip-notes", action="store_true", help="Do not forward anything to Obsidian")
    parser.add_argument("--skip-summary", action="store_true", help="Do not check whether a rollup is due")
    parser.add_argument("--quiet", action="store_true", help="Only print warnings and errors to the console")
    args = parser.parse_args()

    if args.screenshots_dir:
        os.environ["SCREENSHOTS_DIR"] = args.screenshots_dir
    if args.activity_dir:
        os.environ["ACTIVITY_LOG_DIR"] = args.activity_dir

    try:
        settings = get_settings()
    except RuntimeError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    logger = init_logger(
        "observer",
        settings.logging.directory,
        settings.logging.level,
        console_level="WARNING" if args.quiet else settings.logging.level,
    )
    logger.info("Starting screen activity capture...")

    try:
        orchestrator = build_orchestrator(
            settings,
            logger,
            ignore_idle=args.ignore_idle,
            skip_notes=args.skip_notes,
            skip_summary=args.skip_summary,
        )
    except Exception as exc:
        logger.exception("Failed to initialize capture components: %s", exc)
        return 0

    outcome = orchestrator.run_cycle()
    logger.info("Cycle finished: %s", outcome.status)
    return 0


if __name__ == "__main__":
    sys.exit(main())
