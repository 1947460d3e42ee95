"""Webhook proxy: bridges a quote submission to the automation endpoint.

Pipeline stages:
1. Parse submission
2. Destination check
3. Persist submission (before any outbound call)
4. Inject callback URL
5. Forward to destination via httpx
6. Persist any inline AI response
7. Audit log
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import httpx

from quotebridge.models import AuditEvent, AuditEventType, ProxyResult
from quotebridge.sanitizer.html import prepare_html

if TYPE_CHECKING:
    from quotebridge.audit.logger import AuditLogger
    from quotebridge.storage.base import SubmissionStore

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/callback"


class DestinationNotConfiguredError(Exception):
    """Raised when no automation endpoint URL is configured."""


class ForwardError(Exception):
    """Raised when the automation endpoint is unreachable or rejects the call."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


def _submission_id(raw: dict[str, Any]) -> str | None:
    value = raw.get("submissionId")
    if value is None or value == "":
        return None
    return str(value)


def build_callback_url(base_url: str, submission_id: str | None) -> str:
    url = f"{base_url.rstrip('/')}{CALLBACK_PATH}"
    if submission_id:
        url = f"{url}?{urlencode({'submissionId': submission_id})}"
    return url


def parse_destination_reply(resp: httpx.Response) -> dict[str, Any]:
    """Decode the destination's body, tolerating a wrong content type."""
    content_type = resp.headers.get("content-type", "")
    text = resp.text
    try:
        if "application/json" in content_type:
            data = resp.json()
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return {"text": text} if text else {}
    if isinstance(data, dict):
        return data
    return {"data": data}


class WebhookProxy:
    """Persists a submission, forwards it and stores any inline AI response."""

    def __init__(
        self,
        store: SubmissionStore,
        destination_url: str | None,
        audit_logger: AuditLogger | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._store = store
        self._destination_url = destination_url
        self._audit = audit_logger
        self._timeout = timeout

    async def relay(self, body: bytes, callback_base: str) -> ProxyResult:
        """Run the proxy pipeline for one raw request body."""
        submission_id: str | None = None
        try:
            # Stage 1: Parse submission; the payload itself is opaque
            raw = json.loads(body or b"{}")
            if not isinstance(raw, dict):
                raise ValueError("Submission body must be a JSON object")
            submission_id = _submission_id(raw)

            # Stage 2: Destination check
            if not self._destination_url:
                raise DestinationNotConfiguredError("Webhook destination is not configured")

            # Stage 3: Persist before forwarding
            if submission_id:
                if not self._store.upsert_submission(submission_id, raw):
                    logger.warning("Submission %s could not be persisted", submission_id)
                self._log(AuditEventType.SUBMISSION_RECEIVED, submission_id, "success")
            else:
                logger.warning("Submission received without submissionId; response cannot be stored")

            # Stage 4: Callback URL
            outgoing = dict(raw)
            outgoing["callbackUrl"] = build_callback_url(callback_base, submission_id)

            # Stage 5: Forward
            reply = await self._forward(outgoing)

            # Stage 6: Inline AI response
            ai_response = reply.get("aiResponse")
            if isinstance(ai_response, str) and ai_response:
                ai_response = prepare_html(ai_response)
                reply["aiResponse"] = ai_response
                if submission_id:
                    self._store_response(submission_id, ai_response)
            else:
                logger.info(
                    "No AI response in initial reply for %s; awaiting callback", submission_id,
                )

            self._log(AuditEventType.SUBMISSION_FORWARDED, submission_id, "success")
            return ProxyResult(
                status_code=200,
                body={**reply, "success": True, "submissionId": submission_id},
            )
        except DestinationNotConfiguredError as exc:
            logger.error("%s", exc)
            return self._failure(str(exc), submission_id)
        except ForwardError as exc:
            logger.error("Forward failed for %s: %s", submission_id, exc)
            self._log(
                AuditEventType.FORWARD_FAILED, submission_id, "failure",
                {"error": str(exc), "upstream_status": exc.status_code},
            )
            return self._failure(str(exc), submission_id)
        except (json.JSONDecodeError, ValueError) as exc:
            logger.error("Invalid submission body: %s", exc)
            return self._failure(f"Invalid submission: {exc}", submission_id)
        except Exception as exc:
            logger.exception("Webhook proxy error for %s", submission_id)
            return self._failure(f"Internal Server Error: {exc}", submission_id)

    async def _forward(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST the submission to the automation endpoint."""
        if not self._destination_url:
            raise DestinationNotConfiguredError("Webhook destination is not configured")
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    self._destination_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                    timeout=self._timeout,
                )
        except httpx.TimeoutException as exc:
            raise ForwardError("Webhook destination timed out") from exc
        except httpx.HTTPError as exc:
            raise ForwardError(f"Webhook destination unreachable: {exc}") from exc

        if not resp.is_success:
            raise ForwardError(
                f"Webhook destination responded with {resp.status_code}",
                status_code=resp.status_code,
            )
        return parse_destination_reply(resp)

    def _store_response(self, submission_id: str, content: str) -> None:
        if self._store.upsert_response(submission_id, content, "html"):
            self._log(AuditEventType.RESPONSE_STORED, submission_id, "success",
                      {"path": "inline", "length": len(content)})
        else:
            logger.warning("Inline AI response for %s could not be persisted", submission_id)

    def _failure(self, message: str, submission_id: str | None) -> ProxyResult:
        return ProxyResult(
            status_code=500,
            body={"success": False, "message": message, "submissionId": submission_id},
        )

    def _log(
        self,
        event_type: AuditEventType,
        submission_id: str | None,
        result: str,
        details: dict[str, object] | None = None,
    ) -> None:
        if self._audit:
            self._audit.log(AuditEvent(
                event_type=event_type,
                submission_id=submission_id,
                action="proxy",
                result=result,
                details=details,
            ))
