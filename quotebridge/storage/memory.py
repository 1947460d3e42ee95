"""Volatile in-process store used when no durable backend can be opened.

State lives for the lifetime of the process only. In a multi-instance
deployment each instance holds its own copy, so a callback landing on one
instance is invisible to a poll served by another.
"""

from __future__ import annotations

import itertools
import json
from datetime import UTC, datetime
from typing import Any

from quotebridge.models import ResponsePayload, StoreStatus, Submission
from quotebridge.storage.base import SubmissionStore


class MemorySubmissionStore(SubmissionStore):
    """Dictionary-backed store; writes cannot fail."""

    MODE = "in-memory fallback"

    def __init__(self) -> None:
        self._seq = itertools.count(1)
        self._submissions: dict[str, dict[str, Any]] = {}
        self._responses: dict[str, dict[str, Any]] = {}

    def _row(self, table: dict[str, dict[str, Any]], submission_id: str) -> dict[str, Any]:
        existing = table.get(submission_id)
        return {
            "id": existing["id"] if existing else next(self._seq),
            "submission_id": submission_id,
            "created_at": datetime.now(UTC).isoformat(),
            "_order": next(self._seq),
        }

    def upsert_submission(self, submission_id: str, payload: dict[str, Any]) -> bool:
        row = self._row(self._submissions, submission_id)
        row["data"] = json.dumps(payload)
        self._submissions[submission_id] = row
        return True

    def upsert_response(
        self, submission_id: str, content: str, content_type: str = "html",
    ) -> bool:
        row = self._row(self._responses, submission_id)
        row["ai_response"] = content
        row["response_type"] = content_type
        self._responses[submission_id] = row
        return True

    def get_response(self, submission_id: str) -> ResponsePayload | None:
        row = self._responses.get(submission_id)
        if row is None:
            return None
        return ResponsePayload(
            submission_id=submission_id,
            content=row["ai_response"],
            content_type=row["response_type"],
            created_at=row["created_at"],
        )

    def get_submission(self, submission_id: str) -> Submission | None:
        row = self._submissions.get(submission_id)
        if row is None:
            return None
        return Submission(
            submission_id=submission_id,
            payload=json.loads(row["data"]),
            created_at=row["created_at"],
        )

    def get_latest_submission(self) -> Submission | None:
        rows = self._newest_first(self._submissions)
        if not rows:
            return None
        return self.get_submission(rows[0]["submission_id"])

    def list_submissions(self, limit: int = 100) -> list[dict[str, Any]]:
        return self._newest_first(self._submissions)[:limit]

    def list_responses(self, limit: int = 100) -> list[dict[str, Any]]:
        return self._newest_first(self._responses)[:limit]

    def describe(self) -> StoreStatus:
        return StoreStatus(mode=self.MODE, path="N/A")

    def is_degraded(self) -> bool:
        return True

    @staticmethod
    def _newest_first(table: dict[str, dict[str, Any]]) -> list[dict[str, Any]]:
        rows = sorted(
            table.values(),
            key=lambda r: (r["created_at"], r["_order"]),
            reverse=True,
        )
        return [{k: v for k, v in r.items() if k != "_order"} for r in rows]
