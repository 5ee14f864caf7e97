"""
Generates a report from the command line, e.g. from a monthly cron job.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from firesafe.config import get_settings
from firesafe.dependencies import get_db_client, get_event_bus
from firesafe.errors import FiresafeError
from firesafe.events import REPORTS_CHANNEL, publish_event
from firesafe.reports import GENERAL_REPORT, REPORT_TYPES, generate_report
from firesafe.schemas import serialize_report

logger = logging.getLogger(__name__)


def main() -> int:
    now = datetime.now(timezone.utc)
    parser = argparse.ArgumentParser(description="Generate a firesafe report")
    parser.add_argument(
        "-t",
        "--type",
        choices=REPORT_TYPES,
        default=GENERAL_REPORT,
        help="Report type",
    )
    parser.add_argument(
        "--start",
        type=str,
        default=(now - timedelta(days=30)).isoformat(),
        help="Period start (ISO-8601), defaults to 30 days ago",
    )
    parser.add_argument(
        "--end",
        type=str,
        default=now.isoformat(),
        help="Period end (ISO-8601), defaults to now",
    )
    parser.add_argument(
        "--created-by",
        type=str,
        default=None,
        help="User id recorded on the report",
    )
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
    )

    db = get_db_client()
    try:
        report = generate_report(
            db, args.type, args.start, args.end, created_by=args.created_by
        )
    except FiresafeError as exc:
        logger.error("Report generation failed: %s", exc.message)
        return 1

    publish_event(
        get_event_bus(),
        REPORTS_CHANNEL,
        "created",
        {"id": report.id, "report_type": report.report_type},
    )
    print(json.dumps(serialize_report(report), indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
