"""
Creates the object storage bucket and database tables used by the service.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from firesafe.config import get_settings
from firesafe.db import PostgresDbClient
from firesafe.storage import S3StorageClient, StorageError

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Initialise storage and database")
    parser.add_argument(
        "--skip-db",
        action="store_true",
        help="Only create the storage bucket",
    )
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
    )

    if not settings.s3_bucket:
        logger.error("S3_BUCKET is not configured")
        return 1
    storage = S3StorageClient(
        bucket=settings.s3_bucket,
        region=settings.s3_region or "",
        endpoint=settings.s3_endpoint or "",
        access_key_id=settings.aws_access_key_id or "",
        secret_access_key=settings.aws_secret_access_key or "",
        public_base_url=settings.storage_public_base_url or "",
    )
    try:
        created = storage.ensure_bucket()
    except StorageError as exc:
        logger.error("Bucket creation failed: %s", exc)
        return 1
    if created:
        logger.info("Bucket %s created", settings.s3_bucket)
    else:
        logger.info("Bucket %s already exists", settings.s3_bucket)

    if not args.skip_db:
        if not settings.database_url:
            logger.error("DATABASE_URL is not configured")
            return 1
        PostgresDbClient(settings.database_url)
        logger.info("Database tables are ready")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
