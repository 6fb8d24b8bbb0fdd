#!/usr/bin/env python3
"""
Daily transfer of Zoom cloud recordings and AI summaries to Google Drive.
Meant to be run from cron once a day; see setup_connector.py for the line.
"""

import os
import sys
import logging
import argparse
from datetime import datetime

# Add parent directory to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import load_settings
from zoom_connector.errors import ConfigError
from zoom_connector.services.transfer import build_orchestrator

logger = logging.getLogger(__name__)


def setup_logging(level: str, log_dir: str) -> None:
    os.makedirs(log_dir, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(os.path.join(log_dir, f"connector_{datetime.now().strftime('%Y%m%d')}.log"))
        ]
    )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Transfer Zoom recordings and AI summaries to Google Drive")
    parser.add_argument("--days", type=int, help="Number of days to look back (default: DAYS_TO_FETCH)")
    parser.add_argument("--dry-run", action="store_true", help="Report what would be transferred without writing anything")
    parser.add_argument("--no-delete", action="store_true", help="Keep recordings in Zoom after transfer")
    parser.add_argument("--log-level", help="Logging level (default: LOG_LEVEL)")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings()
        if args.no_delete:
            settings.delete_after_transfer = False
        setup_logging(args.log_level or settings.log_level, settings.log_dir)
        settings.validate_for_run()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.days is not None and args.days < 1:
        logger.error("--days must be at least 1")
        return 2

    orchestrator = build_orchestrator(settings, dry_run=args.dry_run)
    report = orchestrator.run(days=args.days)

    if report.aborted:
        logger.error(f"Run aborted: {report.error}")
        return 1

    for outcome in report.outcomes:
        if outcome.status == "planned":
            logger.info(f"[dry run] {outcome.kind} {outcome.date}_{outcome.topic}: {', '.join(outcome.files) or 'no files'}")
    if report.fetch_errors:
        logger.warning(f"{len(report.fetch_errors)} fetch errors; some items may not have been retrieved")
    return 0


if __name__ == "__main__":
    sys.exit(main())
