#!/usr/bin/env python3
"""Run the call processing worker pool until its queue drains."""

import argparse
import logging
import sys
from datetime import UTC, datetime

from callflow.config import get_settings
from callflow.db import session_scope
from callflow.services.calls import queue_recordings_in_range
from callflow.services.jobs import CallJob, CallJobQueue
from callflow.services.worker import WorkerPool


def parse_datetime(value: str) -> datetime:
    """Parse an ISO 8601 date or datetime, assuming UTC when no zone is given."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Fetch, transcribe and analyse call recordings"
    )
    parser.add_argument(
        "recording_refs",
        nargs="*",
        help="Recording references to process",
    )
    parser.add_argument(
        "--start",
        type=parse_datetime,
        help="Queue every unprocessed recording from this time (ISO 8601)",
    )
    parser.add_argument(
        "--end",
        type=parse_datetime,
        help="End of the time range (ISO 8601, default: now)",
    )
    parser.add_argument(
        "--workers",
        "-w",
        type=int,
        default=None,
        help="Number of worker threads (default: WORKER_CONCURRENCY)",
    )
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger("run_worker")

    if not args.recording_refs and args.start is None:
        print("Error: pass recording references or --start", file=sys.stderr)
        return 1

    queue = CallJobQueue()
    for ref in args.recording_refs:
        queue.put(CallJob(recording_ref=ref))

    if args.start is not None:
        end = args.end or datetime.now(UTC)
        try:
            with session_scope() as session:
                queued = queue_recordings_in_range(session, queue, args.start, end, settings)
        except Exception as e:
            logger.error(f"Failed to list recordings: {e}", exc_info=True)
            return 1
        logger.info(f"Queued {len(queued)} recordings between {args.start} and {end}")

    if queue.qsize() == 0:
        logger.info("Nothing to process")
        return 0

    pool = WorkerPool(queue, size=args.workers, settings=settings)
    pool.run_until_drained()
    return 0 if pool.failed == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
