"""Click CLI for submitting quotes and inspecting the bridge."""

from __future__ import annotations

import asyncio
import json
import logging

import click

from quotebridge.client.api import BridgeClient, BridgeClientError, new_submission_id
from quotebridge.client.cache import FileResponseCache
from quotebridge.client.resolver import Resolution, ResolutionState, ResponseResolver

DEFAULT_CACHE = "data/response-cache.json"


@click.group()
@click.option("--base-url", default="http://localhost:8000", help="Bridge base URL.")
@click.option("--cache", "cache_path", default=DEFAULT_CACHE, help="Local response cache file.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, base_url: str, cache_path: str, verbose: bool) -> None:
    """Quote bridge client CLI."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    ctx.ensure_object(dict)
    ctx.obj["base_url"] = base_url
    ctx.obj["cache"] = FileResponseCache(cache_path)


@cli.command()
@click.argument("payload_file", type=click.File("r"))
@click.option("--interval", default=3.0, show_default=True, help="Seconds between polls.")
@click.option("--max-attempts", default=15, show_default=True, help="Polls before giving up.")
@click.pass_context
def submit(ctx: click.Context, payload_file: click.utils.LazyFile, interval: float,
           max_attempts: int) -> None:
    """Submit a quote from PAYLOAD_FILE (JSON) and wait for the action plan."""
    payload = json.load(payload_file)
    if not isinstance(payload, dict):
        raise click.BadParameter("payload must be a JSON object", param_hint="PAYLOAD_FILE")
    resolution = asyncio.run(
        _submit_and_resolve(ctx.obj["base_url"], ctx.obj["cache"], payload,
                            interval, max_attempts)
    )
    _emit(resolution)


async def _submit_and_resolve(
    base_url: str,
    cache: FileResponseCache,
    payload: dict[str, object],
    interval: float,
    max_attempts: int,
) -> Resolution:
    body = dict(payload)
    body.setdefault("submissionId", new_submission_id())
    async with BridgeClient(base_url) as client:
        try:
            reply = await client.submit(body)
        except BridgeClientError as exc:
            raise click.ClickException(str(exc)) from exc
        if not reply.success:
            click.echo(f"Submission failed: {reply.message}", err=True)
        submission_id = reply.submission_id or str(body["submissionId"])
        click.echo(f"Submission: {submission_id}", err=True)

        async with ResponseResolver(
            client, cache, interval=interval, max_attempts=max_attempts,
        ) as resolver:
            immediate = resolver.start(submission_id, reply.ai_response)
            return immediate or await resolver.wait()


@cli.command()
@click.argument("submission_id")
@click.pass_context
def check(ctx: click.Context, submission_id: str) -> None:
    """Check once for the response to SUBMISSION_ID."""

    async def _check() -> str | None:
        async with BridgeClient(ctx.obj["base_url"]) as client:
            resolver = ResponseResolver(client, ctx.obj["cache"])
            entry = await resolver.check_now(submission_id)
            return entry.ai_response if entry else None

    content = asyncio.run(_check())
    if content is None:
        raise click.ClickException(f"No response available yet for {submission_id}")
    click.echo(content)


@cli.command()
@click.option("--key", required=True, help="Admin shared secret.")
@click.option("--table", type=click.Choice(["all", "forms", "responses"]), default="all")
@click.pass_context
def admin(ctx: click.Context, key: str, table: str) -> None:
    """Dump stored submissions and responses."""

    async def _dump() -> dict[str, object]:
        async with BridgeClient(ctx.obj["base_url"]) as client:
            return await client.admin_dump(key, table)

    try:
        click.echo(json.dumps(asyncio.run(_dump()), indent=2))
    except BridgeClientError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command("cache-clear")
@click.pass_context
def cache_clear(ctx: click.Context) -> None:
    """Remove every cached response."""
    removed = ctx.obj["cache"].clear()
    click.echo(f"Cleared {removed} cached responses")


def _emit(resolution: Resolution) -> None:
    if resolution.state is ResolutionState.ERRORED:
        raise click.ClickException(resolution.error or "Could not retrieve response")
    if resolution.state is ResolutionState.TIMED_OUT:
        click.echo("No action plan yet; showing fallback message.", err=True)
    click.echo(resolution.ai_response or "")
