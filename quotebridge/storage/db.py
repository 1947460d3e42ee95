"""SQLite-backed durable store for submissions and AI responses."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from quotebridge.models import ResponsePayload, StoreStatus, Submission
from quotebridge.storage.base import SubmissionStore

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS form_submissions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    submission_id TEXT UNIQUE NOT NULL,
    created_at TEXT NOT NULL,
    data TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS ai_responses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    submission_id TEXT UNIQUE NOT NULL,
    created_at TEXT NOT NULL,
    ai_response TEXT NOT NULL,
    response_type TEXT NOT NULL DEFAULT 'html'
);

CREATE INDEX IF NOT EXISTS idx_submissions_created ON form_submissions(created_at);
"""


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class SQLiteSubmissionStore(SubmissionStore):
    """Durable store on a single SQLite file.

    The constructor raises ``sqlite3.Error``/``OSError`` when the file
    cannot be opened; ``open_store`` relies on that to pick the next
    candidate. Individual operations never raise.
    """

    MODE = "SQLite database"

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(SCHEMA_SQL)
        self._conn.commit()

    @property
    def db_path(self) -> str:
        return self._db_path

    def upsert_submission(self, submission_id: str, payload: dict[str, Any]) -> bool:
        try:
            data = json.dumps(payload)
            self._conn.execute(
                """INSERT INTO form_submissions (submission_id, created_at, data)
                   VALUES (?, ?, ?)
                   ON CONFLICT(submission_id) DO UPDATE SET
                     created_at=excluded.created_at, data=excluded.data""",
                (submission_id, _now_iso(), data),
            )
            self._conn.commit()
            return True
        except (sqlite3.Error, TypeError, ValueError) as exc:
            logger.error("Error saving submission %s: %s", submission_id, exc)
            return False

    def upsert_response(
        self, submission_id: str, content: str, content_type: str = "html",
    ) -> bool:
        try:
            self._conn.execute(
                """INSERT INTO ai_responses
                   (submission_id, created_at, ai_response, response_type)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(submission_id) DO UPDATE SET
                     created_at=excluded.created_at, ai_response=excluded.ai_response,
                     response_type=excluded.response_type""",
                (submission_id, _now_iso(), content, content_type),
            )
            self._conn.commit()
            return True
        except sqlite3.Error as exc:
            logger.error("Error saving AI response for %s: %s", submission_id, exc)
            return False

    def get_response(self, submission_id: str) -> ResponsePayload | None:
        try:
            row = self._conn.execute(
                "SELECT * FROM ai_responses WHERE submission_id = ?", (submission_id,)
            ).fetchone()
        except sqlite3.Error as exc:
            logger.error("Error reading AI response for %s: %s", submission_id, exc)
            return None
        if row is None:
            return None
        return ResponsePayload(
            submission_id=row["submission_id"],
            content=row["ai_response"],
            content_type=row["response_type"],
            created_at=row["created_at"],
        )

    def get_submission(self, submission_id: str) -> Submission | None:
        try:
            row = self._conn.execute(
                "SELECT * FROM form_submissions WHERE submission_id = ?", (submission_id,)
            ).fetchone()
        except sqlite3.Error as exc:
            logger.error("Error reading submission %s: %s", submission_id, exc)
            return None
        return self._to_submission(row)

    def get_latest_submission(self) -> Submission | None:
        try:
            row = self._conn.execute(
                "SELECT * FROM form_submissions ORDER BY created_at DESC, id DESC LIMIT 1"
            ).fetchone()
        except sqlite3.Error as exc:
            logger.error("Error reading latest submission: %s", exc)
            return None
        return self._to_submission(row)

    def list_submissions(self, limit: int = 100) -> list[dict[str, Any]]:
        rows = self._conn.execute(
            "SELECT * FROM form_submissions ORDER BY created_at DESC, id DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [dict(r) for r in rows]

    def list_responses(self, limit: int = 100) -> list[dict[str, Any]]:
        rows = self._conn.execute(
            "SELECT * FROM ai_responses ORDER BY created_at DESC, id DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [dict(r) for r in rows]

    def describe(self) -> StoreStatus:
        return StoreStatus(mode=self.MODE, path=self._db_path)

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _to_submission(row: sqlite3.Row | None) -> Submission | None:
        if row is None:
            return None
        try:
            payload = json.loads(row["data"])
        except json.JSONDecodeError as exc:
            logger.error("Stored payload for %s is not JSON: %s", row["submission_id"], exc)
            return None
        return Submission(
            submission_id=row["submission_id"],
            payload=payload if isinstance(payload, dict) else {"data": payload},
            created_at=row["created_at"],
        )
