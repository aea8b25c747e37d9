"""
Back up every collection to BACKUP_DIR and keep the newest snapshots.

Run once from cron, or pass --interval-seconds to keep running.
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

from craftshop.backup import create_backup
from craftshop.config import get_settings
from craftshop.dependencies import build_document_store

logger = logging.getLogger(__name__)


def run_backup(backup_dir: str, retention: int) -> bool:
    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        # Never snapshot a process-local in-memory store.
        logger.error("Backup failed: DATABASE_URL is not set")
        return False
    store = build_document_store(settings, seed=False)
    if not store.connect():
        logger.error("Backup failed: database not connected")
        return False
    try:
        create_backup(store, backup_dir, retention=retention)
    except Exception as exc:
        logger.exception("Backup failed: %s", exc)
        return False
    finally:
        store.close()
    return True


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Craftshop collection backup")
    parser.add_argument(
        "--backup-dir",
        type=str,
        default=settings.backup_dir,
        help="Directory that holds auto_backup_* snapshots",
    )
    parser.add_argument(
        "--retention",
        type=int,
        default=settings.backup_retention,
        help="How many snapshots to keep",
    )
    parser.add_argument(
        "--interval-seconds",
        type=int,
        default=0,
        help="Seconds between runs (0 runs once and exits)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single backup and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    while True:
        ok = run_backup(args.backup_dir, args.retention)
        if args.once or args.interval_seconds <= 0:
            return 0 if ok else 1
        logger.info("Sleeping for %ds", args.interval_seconds)
        time.sleep(args.interval_seconds)


if __name__ == "__main__":
    raise SystemExit(main())
