#!/usr/bin/env python3
"""Dev entrypoint for running the reminder scheduler.

Usage:
    # Single cycle (deliver due reminders once)
    python scripts/run_scheduler.py --once

    # Continuous loop (Ctrl+C to stop)
    python scripts/run_scheduler.py --loop

    # Limit iterations (for testing)
    python scripts/run_scheduler.py --loop --max-iterations 5

Environment variables:
    DATABASE_URL: Reminder store (required)
    SCHEDULER_BATCH_SIZE: Reminders per cycle (default: 50)
    SCHEDULER_POLL_INTERVAL_SECONDS: Seconds between cycles (default: 30)
    SCHEDULER_MAX_RETRIES: Attempts before a reminder is dead (default: 5)
    TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID: Metrics and alert channel (optional)
"""

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from reporeply.config import get_settings
from reporeply.workers import (
    configure_logging,
    run_scheduler_loop,
    run_scheduler_once,
)


def main() -> int:
    """Main entrypoint for the scheduler."""
    parser = argparse.ArgumentParser(
        description="Run the RepoReply reminder scheduler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    # Mode selection
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument(
        "--once",
        action="store_true",
        help="Run one scheduler cycle and exit",
    )
    mode.add_argument(
        "--loop",
        action="store_true",
        help="Run the scheduler continuously",
    )

    parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Maximum cycles before stopping (loop mode only)",
    )

    # Logging
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Reduce logging to warnings only",
    )

    args = parser.parse_args()

    # Configure logging
    if args.verbose:
        configure_logging(logging.DEBUG)
    elif args.quiet:
        configure_logging(logging.WARNING)
    else:
        configure_logging(logging.INFO)

    logger = logging.getLogger(__name__)

    try:
        get_settings().validate()

        if args.once:
            logger.info("Running scheduler once...")
            result = run_scheduler_once()

            # Print summary
            print("\n--- Scheduler Cycle Summary ---")
            print(f"Stale locks released: {result.released_locks}")
            print(f"Delivered: {result.total_processed}")
            print(f"Failed: {result.total_failed}")
            print(f"Daily metrics sent: {result.metrics_sent}")

            if result.errors:
                print(f"Errors: {len(result.errors)}")
                for err in result.errors:
                    print(f"  - {err}")

            return 0 if result.succeeded else 1

        elif args.loop:
            logger.info("Starting scheduler loop (Ctrl+C to stop)...")
            run_scheduler_loop(max_iterations=args.max_iterations)
            return 0

    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"Scheduler failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
