"""Submission storage for quotebridge.

This package provides:
- The ``SubmissionStore`` interface
- A durable SQLite implementation
- A volatile in-memory fallback
- ``open_store``, which picks the first backend that opens
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable

from quotebridge.storage.base import SubmissionStore
from quotebridge.storage.db import SQLiteSubmissionStore
from quotebridge.storage.memory import MemorySubmissionStore

logger = logging.getLogger(__name__)


def open_store(db_paths: Iterable[str]) -> SubmissionStore:
    """Open the first durable store that works, else the in-memory fallback.

    Never raises. Candidates are tried in order; the volatile store is the
    last resort and reports itself as degraded.
    """
    for path in db_paths:
        try:
            store = SQLiteSubmissionStore(path)
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Could not open submission database at %s: %s", path, exc)
            continue
        logger.info("Using submission database at %s", path)
        return store

    logger.warning("Using in-memory fallback store (volatile, will not persist)")
    return MemorySubmissionStore()


__all__ = [
    "MemorySubmissionStore",
    "SQLiteSubmissionStore",
    "SubmissionStore",
    "open_store",
]
