"""Read-only debug view over the submission store.

Guarded by a static shared secret in the query string. This is a debugging
aid, not an access-control mechanism.
"""

from __future__ import annotations

import hmac
import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from quotebridge.storage.base import SubmissionStore

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 500
TRUNCATION_MARKER = "...(truncated)"
TABLES = ("forms", "responses", "all")


class AdminInspector:
    def __init__(
        self,
        store: SubmissionStore,
        admin_key: str | None,
        row_limit: int = 100,
    ) -> None:
        self._store = store
        self._admin_key = admin_key.encode() if admin_key else None
        self._row_limit = row_limit

    def authorize(self, key: str | None) -> bool:
        """Constant-time key check; an unconfigured key rejects everything."""
        if self._admin_key is None or not key:
            return False
        return hmac.compare_digest(key.encode(), self._admin_key)

    def dump(self, table: str = "all") -> dict[str, Any]:
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")

        status = self._store.describe()
        data: dict[str, Any] = {}
        if table in ("all", "forms"):
            data["formSubmissions"] = self._form_submissions()
        if table in ("all", "responses"):
            data["aiResponses"] = self._ai_responses()

        return {
            "success": True,
            "dbStatus": {"mode": status.mode, "path": status.path},
            "data": data,
        }

    def _form_submissions(self) -> list[dict[str, Any]] | str:
        try:
            rows = self._store.list_submissions(self._row_limit)
        except Exception as exc:
            logger.error("Error getting form submissions: %s", exc)
            return f"Error retrieving submissions: {exc}"

        results = []
        for row in rows:
            try:
                data: Any = json.loads(row["data"])
            except (json.JSONDecodeError, TypeError) as exc:
                data = f"Error parsing JSON: {exc}"
            results.append({**row, "data": data})
        return results

    def _ai_responses(self) -> list[dict[str, Any]] | str:
        try:
            rows = self._store.list_responses(self._row_limit)
        except Exception as exc:
            logger.error("Error getting AI responses: %s", exc)
            return f"Error retrieving AI responses: {exc}"

        results = []
        for row in rows:
            content = row.get("ai_response") or ""
            preview = content[:PREVIEW_CHARS]
            if len(content) > PREVIEW_CHARS:
                preview += TRUNCATION_MARKER
            results.append({
                "id": row.get("id"),
                "submission_id": row.get("submission_id"),
                "created_at": row.get("created_at"),
                "response_type": row.get("response_type"),
                "ai_response_preview": preview,
            })
        return results
