"""Run a reconciliation pass immediately instead of waiting for the daily trigger.

Usage:
    python -m scripts.reconcile_now            # every active student
    python -m scripts.reconcile_now -s 2301    # a single student
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from standing.config import get_settings
from standing.dependencies import get_sync_engine
from standing.errors import StandingError
from standing.logging_config import configure_logging
from standing.reconciliation import reconcile_all

LOGGER = logging.getLogger("standing.reconcile_now")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Refresh cached standings from the portal.")
    parser.add_argument(
        "-s",
        "--student-id",
        help="Refresh a single student by portal id instead of the whole roster.",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=None,
        help="Seconds to pause between students (default: STANDING_RECONCILE_DELAY_SECONDS).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    configure_logging()
    args = parse_args(argv)
    engine = get_sync_engine()

    if args.student_id:
        student = engine.store.get_student(args.student_id)
        if student is None:
            LOGGER.error("No student with id %s", args.student_id)
            return 1
        try:
            record = engine.refresh(student)
        except StandingError as exc:
            LOGGER.error("Refresh failed for %s: %s", args.student_id, exc)
            return 1
        print(json.dumps(record.model_dump(mode="json", exclude={"score_raw_html", "point_raw_html"})))
        return 0

    delay = args.delay if args.delay is not None else get_settings().reconcile_delay_seconds
    try:
        report = reconcile_all(engine, delay_seconds=delay)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Reconciliation aborted: %s", exc)
        return 1
    print(json.dumps(report.summary()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
