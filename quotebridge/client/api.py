"""HTTP client for the bridge endpoints, used by the response resolver and CLI."""

from __future__ import annotations

import secrets
import time
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field


class BridgeClientError(Exception):
    """Raised when the bridge cannot be reached or answers with a server error."""


class SubmitReply(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    success: bool = False
    submission_id: str | None = Field(default=None, alias="submissionId")
    ai_response: str | None = Field(default=None, alias="aiResponse")
    message: str | None = None


def new_submission_id() -> str:
    """Client-side submission token: millisecond timestamp plus random suffix."""
    return f"form_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class BridgeClient:
    """Thin async wrapper over ``/proxy`` and ``/callback``."""

    def __init__(
        self,
        base_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"), transport=transport, timeout=timeout,
        )

    async def submit(self, payload: dict[str, Any]) -> SubmitReply:
        """POST a quote; adds a submission id when the payload has none."""
        body = dict(payload)
        body.setdefault("submissionId", new_submission_id())
        try:
            resp = await self._client.post("/proxy", json=body)
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise BridgeClientError(f"Submit failed: {exc}") from exc
        reply = SubmitReply.model_validate(data)
        if reply.submission_id is None:
            reply.submission_id = body["submissionId"]
        return reply

    async def fetch_response(self, submission_id: str) -> str | None:
        """Poll the callback endpoint; None means nothing has arrived yet."""
        try:
            resp = await self._client.get("/callback", params={"submissionId": submission_id})
        except httpx.HTTPError as exc:
            raise BridgeClientError(f"Poll failed: {exc}") from exc
        if resp.status_code == 404:
            return None
        if not resp.is_success:
            raise BridgeClientError(f"Poll failed with status {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise BridgeClientError(f"Poll returned invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise BridgeClientError("Poll returned a non-object body")
        ai_response = data.get("aiResponse")
        return ai_response if isinstance(ai_response, str) and ai_response else None

    async def admin_dump(self, key: str, table: str = "all") -> dict[str, Any]:
        try:
            resp = await self._client.get("/admin", params={"key": key, "table": table})
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise BridgeClientError(f"Admin request failed: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> BridgeClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
