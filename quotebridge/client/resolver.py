r"""Response resolver: obtains the AI action plan for one submission.

The resolver reconciles the possible sources of a response into a single
answer: the inline reply to the submit call, the local cache, the
callback endpoint, and finally a synthesized fallback once the polling
budget is spent.

States::

    IDLE --start()--> IMMEDIATE                    (inline response)
                 \--> RESOLVED                     (already cached)
                 \--> AWAITING --tick--> RESOLVED  (cache or poll hit)
                                   \--> TIMED_OUT  (attempt budget spent)
                                   \--> ERRORED    (repeated failures)

Exactly one polling task exists per resolver; ``close()`` cancels it and
must be called when the owning view goes away.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from quotebridge.client.api import BridgeClient, BridgeClientError
from quotebridge.client.cache import ResponseCache
from quotebridge.models import CachedResponse, ResponseSource

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULING_URL = "https://calendly.com/frayze/demo"

FALLBACK_TEMPLATE = """<div className="p-6 bg-white rounded-lg shadow-md">
  <h2 className="text-2xl font-bold mb-4">Thank you for your request!</h2>
  <p className="mb-4">
    Your personalized action plan is still being prepared. A member of our team
    will review your selection and be in touch within one business day.
  </p>
  <p className="mb-4">
    Want to move faster? <a href="{scheduling_url}" className="text-blue-500">Schedule a call</a>
    and we'll walk through your stack together.
  </p>
</div>"""

ERROR_MESSAGE = (
    "We couldn't retrieve your action plan right now. "
    "Please contact us directly and we'll follow up with you."
)


class ResolutionState(str, Enum):
    IDLE = "idle"
    IMMEDIATE = "immediate"
    AWAITING = "awaiting"
    RESOLVED = "resolved"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"


TERMINAL_STATES = frozenset({
    ResolutionState.IMMEDIATE,
    ResolutionState.RESOLVED,
    ResolutionState.TIMED_OUT,
    ResolutionState.ERRORED,
})


@dataclass(frozen=True)
class Resolution:
    submission_id: str
    state: ResolutionState
    ai_response: str | None
    source: ResponseSource | None
    attempts: int
    error: str | None = None


def fallback_html(scheduling_url: str = DEFAULT_SCHEDULING_URL) -> str:
    return FALLBACK_TEMPLATE.format(scheduling_url=scheduling_url)


class ResponseResolver:
    """Drives one submission from submit to a rendered response."""

    def __init__(
        self,
        client: BridgeClient,
        cache: ResponseCache,
        *,
        interval: float = 3.0,
        max_attempts: int = 15,
        max_errors: int = 3,
        on_render: Callable[[Resolution], None] | None = None,
        scheduling_url: str = DEFAULT_SCHEDULING_URL,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._cache = cache
        self._interval = interval
        self._max_attempts = max_attempts
        self._max_errors = max_errors
        self._on_render = on_render
        self._scheduling_url = scheduling_url
        self._sleep = sleep

        self._submission_id: str | None = None
        self._state = ResolutionState.IDLE
        self._attempts = 0
        self._errors = 0
        self._last_error: str | None = None
        self._result: Resolution | None = None
        self._task: asyncio.Task[Resolution] | None = None

    @property
    def state(self) -> ResolutionState:
        return self._state

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def result(self) -> Resolution | None:
        return self._result

    @property
    def done(self) -> bool:
        return self._state in TERMINAL_STATES

    def start(self, submission_id: str, immediate: str | None = None) -> Resolution | None:
        """Begin resolving ``submission_id``.

        Returns the resolution straight away when the cache or the inline
        response already has it; otherwise schedules polling and returns None.
        Must be called from a running event loop.
        """
        if self._state is not ResolutionState.IDLE:
            raise RuntimeError("Resolver already started")
        self._submission_id = submission_id

        cached = self._cache.get(submission_id)
        if cached is not None:
            return self._finish(ResolutionState.RESOLVED, cached)

        if immediate:
            entry = self._cache.put(submission_id, immediate, ResponseSource.IMMEDIATE)
            return self._finish(ResolutionState.IMMEDIATE, entry)

        self._state = ResolutionState.AWAITING
        self._task = asyncio.create_task(self._poll(submission_id))
        return None

    async def wait(self) -> Resolution:
        """Wait for the terminal resolution."""
        if self._result is not None:
            return self._result
        if self._task is None:
            raise RuntimeError("Resolver not started or already closed")
        return await self._task

    async def check_now(self, submission_id: str | None = None) -> CachedResponse | None:
        """Run the cache -> network cascade once, outside the polling loop.

        Polling counters are left untouched. Failures are logged and read as
        "nothing yet".
        """
        submission_id = submission_id or self._submission_id
        if submission_id is None:
            raise ValueError("No submission to check")

        cached = self._cache.get(submission_id)
        if cached is not None:
            return cached
        try:
            content = await self._client.fetch_response(submission_id)
        except BridgeClientError as exc:
            logger.warning("Manual check failed for %s: %s", submission_id, exc)
            return None
        if content is None:
            return None
        return self._cache.put(submission_id, content, ResponseSource.POLLED)

    async def close(self) -> None:
        """Cancel the polling task, if any."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def __aenter__(self) -> ResponseResolver:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _poll(self, submission_id: str) -> Resolution:
        while True:
            await self._sleep(self._interval)
            try:
                resolution = await self._tick(submission_id)
            except Exception as exc:
                if self._result is not None:
                    logger.exception("Render callback failed for %s", submission_id)
                    return self._result
                self._last_error = str(exc)
                logger.exception("Polling for %s failed unexpectedly", submission_id)
                return self._fail(submission_id)
            if resolution is not None:
                return resolution

    async def _lookup(self, submission_id: str) -> Resolution | None:
        cached = self._cache.get(submission_id)
        if cached is not None:
            return self._finish(ResolutionState.RESOLVED, cached)
        content = await self._client.fetch_response(submission_id)
        entry = None
        if content is not None:
            entry = self._cache.put(submission_id, content, ResponseSource.POLLED)
        self._errors = 0
        if entry is None:
            return None
        return self._finish(ResolutionState.RESOLVED, entry)

    async def _tick(self, submission_id: str) -> Resolution | None:
        try:
            resolution = await self._lookup(submission_id)
        except Exception as exc:
            if self._result is not None:
                raise
            self._errors += 1
            self._last_error = str(exc)
            logger.warning(
                "Poll %d for %s failed (%d/%d): %s",
                self._attempts + 1, submission_id, self._errors, self._max_errors, exc,
            )
            if self._errors >= self._max_errors:
                self._attempts += 1
                return self._fail(submission_id)
        else:
            if resolution is not None:
                return resolution

        self._attempts += 1
        if self._attempts >= self._max_attempts:
            logger.info(
                "No response for %s after %d attempts; using fallback",
                submission_id, self._attempts,
            )
            entry = self._cache.put(
                submission_id, fallback_html(self._scheduling_url), ResponseSource.FALLBACK,
            )
            return self._finish(ResolutionState.TIMED_OUT, entry)
        return None

    def _finish(self, state: ResolutionState, entry: CachedResponse) -> Resolution:
        return self._render(Resolution(
            submission_id=entry.submission_id,
            state=state,
            ai_response=entry.ai_response,
            source=entry.source,
            attempts=self._attempts,
        ))

    def _fail(self, submission_id: str) -> Resolution:
        logger.error("Giving up on %s: %s", submission_id, self._last_error)
        return self._render(Resolution(
            submission_id=submission_id,
            state=ResolutionState.ERRORED,
            ai_response=None,
            source=None,
            attempts=self._attempts,
            error=ERROR_MESSAGE,
        ))

    def _render(self, resolution: Resolution) -> Resolution:
        self._state = resolution.state
        self._result = resolution
        if self._on_render is not None:
            self._on_render(resolution)
        return resolution
