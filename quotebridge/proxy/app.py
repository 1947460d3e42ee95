"""FastAPI application exposing the proxy, callback and admin endpoints."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from quotebridge.admin.inspector import AdminInspector
from quotebridge.audit.logger import AuditLogger
from quotebridge.config import Settings
from quotebridge.models import AuditEvent, AuditEventType
from quotebridge.proxy.cors_middleware import CORSMiddleware
from quotebridge.storage import SubmissionStore, open_store
from quotebridge.webhook.callback import UNKNOWN_SUBMISSION, CallbackReceiver
from quotebridge.webhook.relay import WebhookProxy

logger = logging.getLogger(__name__)

_ALL_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH"]


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    settings = Settings.from_env()
    audit_logger = (
        AuditLogger.from_env(settings.audit_log_path) if settings.audit_log_path else None
    )
    return create_app(settings, audit_logger=audit_logger)


def create_app(
    settings: Settings,
    store: SubmissionStore | None = None,
    audit_logger: AuditLogger | None = None,
) -> FastAPI:
    """Create the bridge app. Opens the store from ``settings`` unless one is given."""
    if store is None:
        store = open_store(settings.db_candidates)
    if store.is_degraded():
        logger.warning("Submission store is degraded: data will not survive a restart")

    proxy_pipeline = WebhookProxy(
        store,
        settings.destination_url,
        audit_logger=audit_logger,
        timeout=settings.webhook_timeout,
    )
    receiver = CallbackReceiver(
        store, audit_logger=audit_logger, latest_fallback=settings.latest_fallback,
    )
    inspector = AdminInspector(store, settings.admin_key)

    app = FastAPI(docs_url=None, redoc_url=None)
    app.state.store = store

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.api_route("/proxy", methods=_ALL_METHODS)
    async def proxy(request: Request) -> Response:
        if request.method != "POST":
            return _method_not_allowed("POST")
        body = await request.body()
        callback_base = settings.public_base_url or _site_url(request)
        result = await proxy_pipeline.relay(body, callback_base)
        return JSONResponse(result.body, status_code=result.status_code)

    @app.api_route("/callback", methods=_ALL_METHODS)
    async def callback(request: Request) -> Response:
        submission_id = request.query_params.get("submissionId") or UNKNOWN_SUBMISSION

        if request.method == "GET":
            try:
                found = receiver.lookup(submission_id)
            except Exception as exc:
                logger.exception("Error retrieving AI response for %s", submission_id)
                return JSONResponse({
                    "success": False,
                    "message": "Error retrieving AI response",
                    "error": str(exc),
                    "submissionId": submission_id,
                }, status_code=500)
            if found is None:
                return JSONResponse({
                    "success": False,
                    "message": f"No response available yet for submissionId: {submission_id}",
                    "submissionId": submission_id,
                }, status_code=404)
            content: dict[str, object] = {
                "success": True,
                "submissionId": found.submission_id,
                "aiResponse": found.ai_response,
                "timestamp": found.timestamp,
            }
            if found.is_fallback:
                content["originalSubmissionId"] = found.original_submission_id
                content["note"] = found.note
            return JSONResponse(content)

        if request.method != "POST":
            return _method_not_allowed("POST, GET")

        try:
            body = await request.body()
            return JSONResponse(receiver.receive(submission_id, body))
        except Exception as exc:
            logger.error("Webhook callback error for %s: %s", submission_id, exc)
            return JSONResponse({
                "success": False,
                "message": "Internal Server Error",
                "submissionId": submission_id,
                "error": str(exc),
                "timestamp": datetime.now(UTC).isoformat(),
            }, status_code=500)

    @app.api_route("/admin", methods=_ALL_METHODS)
    async def admin(request: Request) -> Response:
        if request.method != "GET":
            return _method_not_allowed("GET")

        source_ip = request.client.host if request.client else None
        if not inspector.authorize(request.query_params.get("key")):
            _audit_admin(audit_logger, AuditEventType.ADMIN_DENIED, "failure", source_ip)
            return JSONResponse({"error": "Unauthorized"}, status_code=401)

        table = request.query_params.get("table", "all")
        try:
            dump = inspector.dump(table)
        except ValueError as exc:
            return JSONResponse({"success": False, "error": str(exc)}, status_code=400)
        except Exception as exc:
            logger.exception("Database admin error")
            return JSONResponse({"success": False, "error": str(exc)}, status_code=500)
        _audit_admin(audit_logger, AuditEventType.ADMIN_ACCESS, "success", source_ip)
        return JSONResponse(dump)

    app.add_middleware(CORSMiddleware)

    return app


def _site_url(request: Request) -> str:
    host = request.headers.get("host", "localhost")
    scheme = "http" if host.startswith(("localhost", "127.0.0.1")) else "https"
    return f"{scheme}://{host}"


def _method_not_allowed(allow: str) -> JSONResponse:
    return JSONResponse(
        {"message": "Method Not Allowed"},
        status_code=405,
        headers={"Allow": allow},
    )


def _audit_admin(
    audit_logger: AuditLogger | None,
    event_type: AuditEventType,
    result: str,
    source_ip: str | None,
) -> None:
    if audit_logger:
        audit_logger.log(AuditEvent(
            event_type=event_type,
            source_ip=source_ip,
            action="GET /admin",
            result=result,
        ))
