"""Tests for the admin inspector."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from quotebridge.admin.inspector import PREVIEW_CHARS, TRUNCATION_MARKER, AdminInspector
from quotebridge.models import StoreStatus
from quotebridge.storage import MemorySubmissionStore


class TestAuthorize:
    def test_matching_key(self) -> None:
        assert AdminInspector(MemorySubmissionStore(), "secret").authorize("secret")

    @pytest.mark.parametrize("key", [None, "", "wrong"])
    def test_rejects_bad_keys(self, key: str | None) -> None:
        assert not AdminInspector(MemorySubmissionStore(), "secret").authorize(key)

    def test_unconfigured_key_rejects_everything(self) -> None:
        assert not AdminInspector(MemorySubmissionStore(), None).authorize("anything")


class TestDump:
    def test_reports_degraded_mode(self) -> None:
        dump = AdminInspector(MemorySubmissionStore(), "k").dump()
        assert dump["success"] is True
        assert dump["dbStatus"] == {"mode": "in-memory fallback", "path": "N/A"}

    def test_table_selection(self) -> None:
        inspector = AdminInspector(MemorySubmissionStore(), "k")
        assert set(inspector.dump("all")["data"]) == {"formSubmissions", "aiResponses"}
        assert set(inspector.dump("forms")["data"]) == {"formSubmissions"}
        assert set(inspector.dump("responses")["data"]) == {"aiResponses"}

    def test_unknown_table(self) -> None:
        with pytest.raises(ValueError):
            AdminInspector(MemorySubmissionStore(), "k").dump("users")

    def test_submission_payload_parsed(self) -> None:
        store = MemorySubmissionStore()
        store.upsert_submission("form_1", {"totalPrice": 500})
        rows = AdminInspector(store, "k").dump("forms")["data"]["formSubmissions"]
        assert rows[0]["submission_id"] == "form_1"
        assert rows[0]["data"] == {"totalPrice": 500}

    def test_malformed_row_reported_inline(self) -> None:
        store = MagicMock()
        store.describe.return_value = StoreStatus(mode="SQLite database", path="/tmp/x.db")
        store.list_submissions.return_value = [
            {"id": 1, "submission_id": "bad", "created_at": "t", "data": "{oops"},
        ]
        rows = AdminInspector(store, "k").dump("forms")["data"]["formSubmissions"]
        assert rows[0]["data"].startswith("Error parsing JSON:")

    def test_response_preview_truncated(self) -> None:
        store = MemorySubmissionStore()
        store.upsert_response("long", "x" * (PREVIEW_CHARS + 10))
        store.upsert_response("short", "<p>ok</p>")
        rows = AdminInspector(store, "k").dump("responses")["data"]["aiResponses"]
        by_id = {r["submission_id"]: r for r in rows}
        assert by_id["long"]["ai_response_preview"] == "x" * PREVIEW_CHARS + TRUNCATION_MARKER
        assert by_id["short"]["ai_response_preview"] == "<p>ok</p>"
        assert "ai_response" not in by_id["short"]

    def test_listing_failure_degrades_to_string(self) -> None:
        store = MagicMock()
        store.describe.return_value = StoreStatus(mode="SQLite database", path="/tmp/x.db")
        store.list_submissions.side_effect = RuntimeError("disk I/O error")
        store.list_responses.return_value = []
        dump = AdminInspector(store, "k").dump()
        assert dump["success"] is True
        assert "disk I/O error" in dump["data"]["formSubmissions"]
        assert dump["data"]["aiResponses"] == []

    def test_row_limit_applied(self) -> None:
        store = MemorySubmissionStore()
        for i in range(5):
            store.upsert_submission(f"form_{i}", {})
        rows = AdminInspector(store, "k", row_limit=2).dump("forms")["data"]["formSubmissions"]
        assert len(rows) == 2
