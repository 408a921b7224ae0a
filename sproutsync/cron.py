"""SproutSync — One-shot Sync for External Cron.

Usage:
    python -m sproutsync.cron [--full-backfill]

Exits with status 1 when credentials are rejected, 0 otherwise; unit-level
failures are reported in the run summary and do not change the exit code.
"""

import argparse
import asyncio
import sys

from sproutsync.core.errors import AuthenticationError
from sproutsync.core.logging import get_logger
from sproutsync.sync.orchestrator import run_sync

logger = get_logger("cron")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run one Sprout → Sheets sync")
    parser.add_argument(
        "--full-backfill",
        action="store_true",
        help="ignore stored state and resync every month from the backfill start",
    )
    args = parser.parse_args(argv)

    try:
        summary = asyncio.run(run_sync(full_backfill=args.full_backfill))
    except AuthenticationError as e:
        logger.error(f"Authentication failed, aborting: {e}")
        return 1

    failed = sum(1 for r in summary.results if r.status.startswith("Error"))
    logger.info(f"Cron sync finished: {len(summary.results)} units, {failed} failed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
