"""
One-time sample data load for a fresh store.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from craftshop.db import DocumentStore

logger = logging.getLogger(__name__)

SEED_COLLECTIONS = ("inventory", "customers", "sales", "gallery")


def load_seed_data(store: DocumentStore, seed_dir: str | Path) -> dict[str, int]:
    """
    Insert bundled seed files when the inventory collection is empty.

    Returns the number of records loaded per collection; empty when the
    store already holds inventory.
    """
    if store.count("inventory") > 0:
        return {}

    seed_path = Path(seed_dir)
    loaded: dict[str, int] = {}
    for name in SEED_COLLECTIONS:
        path = seed_path / f"{name}.json"
        if not path.is_file():
            continue
        records = json.loads(path.read_text(encoding="utf-8"))
        if not records:
            continue
        store.insert_many(name, records)
        loaded[name] = len(records)
        logger.info("Loaded %d %s sample records", len(records), name)
    return loaded
