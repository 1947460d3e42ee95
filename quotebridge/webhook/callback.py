"""Callback receiver: stores AI responses delivered out-of-band and answers polls."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from quotebridge.models import AuditEvent, AuditEventType, CallbackLookup
from quotebridge.sanitizer.html import prepare_html

if TYPE_CHECKING:
    from quotebridge.audit.logger import AuditLogger
    from quotebridge.storage.base import SubmissionStore

logger = logging.getLogger(__name__)

UNKNOWN_SUBMISSION = "unknown"
LATEST_FALLBACK_NOTE = "Using response from latest submission"


class CallbackReceiver:
    """Persists callback deliveries and resolves polling lookups.

    The automation system may retry its callback, so ``receive`` is an
    upsert: repeating it leaves a single record holding the last content.
    """

    def __init__(
        self,
        store: SubmissionStore,
        audit_logger: AuditLogger | None = None,
        latest_fallback: bool = False,
    ) -> None:
        self._store = store
        self._audit = audit_logger
        self._latest_fallback = latest_fallback

    def lookup(self, submission_id: str) -> CallbackLookup | None:
        """Return the stored response for ``submission_id``, or None if not there yet.

        With ``latest_fallback`` enabled, a miss falls back to the response
        of the most recent submission and the result is marked as such.
        """
        stored = self._store.get_response(submission_id)
        if stored is not None:
            return CallbackLookup(
                submission_id=submission_id,
                ai_response=stored.content,
                timestamp=stored.created_at,
            )

        if not self._latest_fallback:
            return None

        latest = self._store.get_latest_submission()
        if latest is None or latest.submission_id == submission_id:
            return None
        logger.info(
            "No response for %s, checking latest submission %s",
            submission_id, latest.submission_id,
        )
        latest_response = self._store.get_response(latest.submission_id)
        if latest_response is None:
            return None
        return CallbackLookup(
            submission_id=latest.submission_id,
            ai_response=latest_response.content,
            timestamp=latest_response.created_at,
            original_submission_id=submission_id,
            note=LATEST_FALLBACK_NOTE,
        )

    def receive(self, submission_id: str, body: bytes) -> dict[str, Any]:
        """Handle one callback delivery and return the acknowledgement body.

        Raises ``ValueError`` when the body is not a JSON object.
        """
        data = json.loads(body or b"{}")
        if not isinstance(data, dict):
            raise ValueError("Callback body must be a JSON object")

        ai_response = data.get("aiResponse")
        if isinstance(ai_response, str) and ai_response:
            ai_response = prepare_html(ai_response)
            logger.info(
                "AI response received for %s, length: %d", submission_id, len(ai_response),
            )
            if not self._store.upsert_response(submission_id, ai_response, "html"):
                logger.error("AI response for %s could not be persisted", submission_id)
        else:
            ai_response = None
            logger.warning("No aiResponse found in callback data for %s", submission_id)

        if self._audit:
            self._audit.log(AuditEvent(
                event_type=AuditEventType.CALLBACK_RECEIVED,
                submission_id=submission_id,
                action="callback",
                result="success",
                details={"has_response": ai_response is not None},
            ))

        return {
            "success": True,
            "message": "Callback received successfully",
            "submissionId": submission_id,
            "aiResponse": ai_response,
            "timestamp": datetime.now(UTC).isoformat(),
        }
