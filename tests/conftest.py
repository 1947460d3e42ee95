"""Shared test fixtures for quotebridge."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from quotebridge.audit.logger import AuditLogger
from quotebridge.config import Settings
from quotebridge.storage import MemorySubmissionStore, SQLiteSubmissionStore


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "submissions.db")


@pytest.fixture
def sqlite_store(db_path: str):
    store = SQLiteSubmissionStore(db_path)
    yield store
    store.close()


@pytest.fixture
def memory_store() -> MemorySubmissionStore:
    return MemorySubmissionStore()


@pytest.fixture(params=["sqlite", "memory"])
def any_store(request: pytest.FixtureRequest, tmp_path: Path):
    """Both store implementations, for contract tests."""
    if request.param == "sqlite":
        store = SQLiteSubmissionStore(str(tmp_path / "contract.db"))
        yield store
        store.close()
    else:
        yield MemorySubmissionStore()


# --- Factory functions for test data ---


def make_settings(**kwargs: Any) -> Settings:
    """Factory for Settings with sensible test defaults."""
    defaults: dict[str, Any] = {
        "destination_url": "https://automation.test/webhook/quote",
        "public_base_url": "https://bridge.test",
        "db_path": "unused.db",
        "fallback_db_path": "unused-fallback.db",
        "admin_key": "test-admin-key",
        "latest_fallback": False,
        "webhook_timeout": 5.0,
    }
    defaults.update(kwargs)
    return Settings(**defaults)


def make_quote(**kwargs: Any) -> dict[str, Any]:
    """Factory for a quote submission body."""
    defaults: dict[str, Any] = {
        "submissionId": "form_1",
        "formData": {
            "businessName": "Acme Plumbing",
            "contactName": "Sam Doe",
            "email": "sam@acme.test",
        },
        "selectedAddons": [{"id": "seo", "name": "Local SEO"}],
        "totalPrice": 500,
    }
    defaults.update(kwargs)
    return defaults
