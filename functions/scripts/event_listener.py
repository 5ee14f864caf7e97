"""
Runs the event handlers (push fan-out, audit log) against the Redis bus.

The API process only publishes when REDIS_URL is set; this listener is
the process that reacts to those events.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from redis import exceptions as redis_exceptions

from firesafe.app import register_event_handlers
from firesafe.config import get_settings
from firesafe.events import RedisEventBus

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Firesafe event listener")
    parser.add_argument(
        "--max-events",
        type=int,
        default=None,
        help="Exit after dispatching N events",
    )
    parser.add_argument(
        "--reconnect-seconds",
        type=int,
        default=5,
        help="Seconds to wait before reconnecting to Redis",
    )
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
    )
    if not settings.redis_url:
        logger.error("REDIS_URL is not configured")
        return 1

    bus = RedisEventBus(url=settings.redis_url, channel_prefix=settings.redis_channel_prefix)
    register_event_handlers(bus)
    logger.info("Listening on %s:*", settings.redis_channel_prefix)

    while True:
        try:
            dispatched = bus.listen(max_events=args.max_events)
        except redis_exceptions.ConnectionError:
            logger.info("Reconnecting in %ds", args.reconnect_seconds)
            time.sleep(args.reconnect_seconds)
            continue
        logger.info("Dispatched %d events", dispatched)
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
