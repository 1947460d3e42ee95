"""Local response cache shared by every resolver on the host.

One key scheme: the submission id. Entries never expire. The cache is a
latency optimization over the server store, not a source of truth for
the server, but once an entry exists readers take it as final.
"""

from __future__ import annotations

import fcntl
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from quotebridge.models import CachedResponse, ResponseSource
from quotebridge.sanitizer.html import prepare_html

logger = logging.getLogger(__name__)


class ResponseCache(ABC):
    def put(
        self, submission_id: str, ai_response: str, source: ResponseSource,
    ) -> CachedResponse:
        entry = CachedResponse(
            submission_id=submission_id,
            ai_response=prepare_html(ai_response),
            source=source,
        )
        self._write(entry)
        logger.debug("Cached response for %s (source: %s)", submission_id, source.value)
        return entry

    @abstractmethod
    def get(self, submission_id: str) -> CachedResponse | None: ...

    @abstractmethod
    def clear(self) -> int:
        """Drop every entry and return how many were removed."""

    @abstractmethod
    def _write(self, entry: CachedResponse) -> None: ...


class MemoryResponseCache(ResponseCache):
    def __init__(self) -> None:
        self._entries: dict[str, CachedResponse] = {}

    def get(self, submission_id: str) -> CachedResponse | None:
        return self._entries.get(submission_id)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def _write(self, entry: CachedResponse) -> None:
        self._entries[entry.submission_id] = entry


class FileResponseCache(ResponseCache):
    """JSON file cache; concurrent writers are serialized by an ``fcntl`` lock.

    Last write wins. A missing or unreadable file reads as an empty cache.
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    @contextmanager
    def _locked(self) -> Iterator[None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        lock_file = self.path.parent / f".{self.path.name}.lock"
        with open(lock_file, "w") as lf:
            fcntl.flock(lf, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lf, fcntl.LOCK_UN)

    def _load(self) -> dict[str, dict[str, object]]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text() or "{}")
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable response cache %s: %s", self.path, exc)
            return {}
        return raw if isinstance(raw, dict) else {}

    def get(self, submission_id: str) -> CachedResponse | None:
        with self._locked():
            raw = self._load().get(submission_id)
        if raw is None:
            return None
        try:
            return CachedResponse.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Ignoring malformed cache entry for %s: %s", submission_id, exc)
            return None

    def clear(self) -> int:
        with self._locked():
            count = len(self._load())
            self.path.write_text("{}")
        return count

    def _write(self, entry: CachedResponse) -> None:
        with self._locked():
            entries = self._load()
            entries[entry.submission_id] = entry.model_dump(mode="json")
            self.path.write_text(json.dumps(entries, indent=2))
