"""Tests for the quotebridge CLI."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from quotebridge.cli import cli
from quotebridge.client.api import SubmitReply
from quotebridge.client.cache import FileResponseCache
from quotebridge.client.resolver import Resolution, ResolutionState
from quotebridge.models import ResponseSource


def _write_payload(tmp_path: Path, payload: object) -> str:
    p = tmp_path / "quote.json"
    p.write_text(json.dumps(payload))
    return str(p)


def _resolution(state: ResolutionState, ai_response: str | None = None,
                error: str | None = None) -> Resolution:
    return Resolution(
        submission_id="form_1",
        state=state,
        ai_response=ai_response,
        source=None,
        attempts=0,
        error=error,
    )


def test_submit_prints_resolved_plan(tmp_path: Path) -> None:
    payload = _write_payload(tmp_path, {"submissionId": "form_1", "totalPrice": 500})
    cache = str(tmp_path / "cache.json")
    resolved = _resolution(ResolutionState.RESOLVED, "<p>plan</p>")
    with patch("quotebridge.cli._submit_and_resolve", new=AsyncMock(return_value=resolved)) as m:
        result = CliRunner().invoke(cli, ["--cache", cache, "submit", payload, "--interval", "1"])

    assert result.exit_code == 0, result.output
    assert "<p>plan</p>" in result.output
    args = m.await_args.args
    assert args[0] == "http://localhost:8000"
    assert args[2] == {"submissionId": "form_1", "totalPrice": 500}
    assert args[3] == 1.0


def test_submit_rejects_non_object_payload(tmp_path: Path) -> None:
    payload = _write_payload(tmp_path, [1, 2, 3])
    result = CliRunner().invoke(
        cli, ["--cache", str(tmp_path / "cache.json"), "submit", payload],
    )
    assert result.exit_code != 0
    assert "JSON object" in result.output


def test_submit_errored_exits_nonzero(tmp_path: Path) -> None:
    payload = _write_payload(tmp_path, {"totalPrice": 1})
    errored = _resolution(ResolutionState.ERRORED, error="Could not reach bridge")
    with patch("quotebridge.cli._submit_and_resolve", new=AsyncMock(return_value=errored)):
        result = CliRunner().invoke(
            cli, ["--cache", str(tmp_path / "cache.json"), "submit", payload],
        )
    assert result.exit_code == 1
    assert "Could not reach bridge" in result.output


def test_check_reads_local_cache(tmp_path: Path) -> None:
    cache = str(tmp_path / "cache.json")
    FileResponseCache(cache).put("form_9", "<p>cached</p>", ResponseSource.POLLED)
    result = CliRunner().invoke(cli, ["--cache", cache, "check", "form_9"])
    assert result.exit_code == 0, result.output
    assert "<p>cached</p>" in result.output


def test_check_missing_response(tmp_path: Path) -> None:
    cache = str(tmp_path / "cache.json")
    with patch(
        "quotebridge.cli.BridgeClient.fetch_response", new=AsyncMock(return_value=None),
    ):
        result = CliRunner().invoke(cli, ["--cache", cache, "check", "form_9"])
    assert result.exit_code == 1
    assert "No response available yet for form_9" in result.output


def test_cache_clear(tmp_path: Path) -> None:
    cache = str(tmp_path / "cache.json")
    store = FileResponseCache(cache)
    store.put("a", "x", ResponseSource.POLLED)
    store.put("b", "y", ResponseSource.FALLBACK)
    result = CliRunner().invoke(cli, ["--cache", cache, "cache-clear"])
    assert result.exit_code == 0
    assert "Cleared 2 cached responses" in result.output
    assert FileResponseCache(cache).get("a") is None


def test_admin_dumps_json(tmp_path: Path) -> None:
    dump = {"success": True, "dbStatus": {"mode": "SQLite database", "path": "x.db"}, "data": {}}
    with patch("quotebridge.cli.BridgeClient.admin_dump", new=AsyncMock(return_value=dump)) as m:
        result = CliRunner().invoke(
            cli, ["--cache", str(tmp_path / "c.json"), "admin", "--key", "k", "--table", "forms"],
        )
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["dbStatus"]["mode"] == "SQLite database"
    m.assert_awaited_once_with("k", "forms")


def test_submit_uses_generated_id_when_reply_has_none(tmp_path: Path) -> None:
    payload = _write_payload(tmp_path, {"totalPrice": 500})
    cache = str(tmp_path / "cache.json")
    reply = SubmitReply.model_validate({"success": True, "aiResponse": "<p>now</p>"})
    with patch("quotebridge.cli.BridgeClient.submit", new=AsyncMock(return_value=reply)) as m:
        result = CliRunner().invoke(cli, ["--cache", cache, "submit", payload])

    assert result.exit_code == 0, result.output
    assert "<p>now</p>" in result.output
    sent = m.await_args.args[0]
    assert sent["submissionId"].startswith("form_")
    cached = FileResponseCache(cache).get(sent["submissionId"])
    assert cached is not None
    assert cached.source is ResponseSource.IMMEDIATE
