"""Shared Pydantic data models for quotebridge."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# --- Enums ---


class AuditEventType(str, Enum):
    SUBMISSION_RECEIVED = "submission_received"
    SUBMISSION_FORWARDED = "submission_forwarded"
    FORWARD_FAILED = "forward_failed"
    RESPONSE_STORED = "response_stored"
    CALLBACK_RECEIVED = "callback_received"
    ADMIN_ACCESS = "admin_access"
    ADMIN_DENIED = "admin_denied"


class ResponseSource(str, Enum):
    IMMEDIATE = "immediate"
    POLLED = "polled"
    FALLBACK = "fallback"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


# --- Store Models ---


class Submission(BaseModel):
    model_config = ConfigDict(frozen=True)

    submission_id: str
    payload: dict[str, Any]
    created_at: str = Field(default_factory=_now_iso)


class ResponsePayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    submission_id: str
    content: str
    content_type: str = "html"
    created_at: str = Field(default_factory=_now_iso)


class StoreStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: str
    path: str


# --- HTTP Bodies ---


class ProxyResult(BaseModel):
    status_code: int
    body: dict[str, Any]


class CallbackLookup(BaseModel):
    model_config = ConfigDict(frozen=True)

    submission_id: str
    ai_response: str
    timestamp: str
    original_submission_id: str | None = None
    note: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.original_submission_id is not None


class CachedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    submission_id: str
    ai_response: str
    source: ResponseSource
    timestamp: str = Field(default_factory=_now_iso)


# --- Audit Models ---


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    submission_id: str | None = None
    source_ip: str | None = None
    action: str
    result: str  # "success" | "failure" | "blocked"
    details: dict[str, object] | None = None
