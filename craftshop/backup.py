"""
Snapshot every collection to a timestamped directory and prune old snapshots.

Layout::

    <backup_root>/auto_backup_<timestamp>/
        inventory.json
        customers.json
        sales.json
        gallery.json
        ideas.json
        BACKUP_INFO.json
"""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from craftshop.db import COLLECTIONS, DocumentStore

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "auto_backup_"
BACKUP_INFO_FILE = "BACKUP_INFO.json"
DEFAULT_RETENTION = 30


@dataclass
class BackupResult:
    path: Path
    counts: dict[str, int]
    removed: list[Path] = field(default_factory=list)


def backup_timestamp(now: datetime) -> str:
    """ISO-8601 UTC with ``:`` and ``.`` made filesystem safe."""
    stamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z").replace(":", "-").replace(".", "-")


def _write_json(path: Path, payload) -> None:
    path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")


def create_backup(
    store: DocumentStore,
    backup_root: str | Path,
    *,
    retention: int = DEFAULT_RETENTION,
    now: Optional[datetime] = None,
) -> BackupResult:
    now = now or datetime.now(timezone.utc)
    snapshot = {name: store.find_all(name) for name in COLLECTIONS}

    backup_dir = Path(backup_root) / f"{BACKUP_PREFIX}{backup_timestamp(now)}"
    backup_dir.mkdir(parents=True, exist_ok=True)
    for name, records in snapshot.items():
        _write_json(backup_dir / f"{name}.json", records)

    counts = {name: len(records) for name, records in snapshot.items()}
    _write_json(
        backup_dir / BACKUP_INFO_FILE,
        {
            "timestamp": now.astimezone(timezone.utc).isoformat(),
            "counts": counts,
            "backup_type": "automatic",
        },
    )
    logger.info("Backup created: %s", backup_dir)
    for name, count in counts.items():
        logger.info("  - %d %s", count, name)

    removed = prune_backups(backup_root, retention=retention)
    return BackupResult(path=backup_dir, counts=counts, removed=removed)


def prune_backups(backup_root: str | Path, retention: int = DEFAULT_RETENTION) -> list[Path]:
    """Delete all but the ``retention`` most recently modified backup directories."""
    root = Path(backup_root)
    if not root.is_dir():
        return []
    backups = sorted(
        (p for p in root.iterdir() if p.is_dir() and p.name.startswith(BACKUP_PREFIX)),
        key=lambda p: (p.stat().st_mtime, p.name),
        reverse=True,
    )
    stale = backups[retention:]
    if stale:
        logger.info("Cleaning up old backups (keeping %d most recent)", retention)
    for path in stale:
        shutil.rmtree(path)
        logger.info("  Removed: %s", path.name)
    return stale
