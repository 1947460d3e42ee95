"""Storage interface shared by the durable and volatile submission stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from quotebridge.models import ResponsePayload, StoreStatus, Submission


class SubmissionStore(ABC):
    """Keyed storage for submissions and their AI responses.

    Upserts and point lookups never raise: failures are logged and reported
    as ``False`` or ``None``. A missing record is a normal result. The
    listings used by the admin inspector let errors propagate.
    """

    @abstractmethod
    def upsert_submission(self, submission_id: str, payload: dict[str, Any]) -> bool:
        """Insert or replace the submission row for ``submission_id``."""

    @abstractmethod
    def upsert_response(
        self, submission_id: str, content: str, content_type: str = "html",
    ) -> bool:
        """Insert or replace the response row for ``submission_id``."""

    @abstractmethod
    def get_response(self, submission_id: str) -> ResponsePayload | None: ...

    @abstractmethod
    def get_submission(self, submission_id: str) -> Submission | None: ...

    @abstractmethod
    def get_latest_submission(self) -> Submission | None: ...

    @abstractmethod
    def list_submissions(self, limit: int = 100) -> list[dict[str, Any]]:
        """Raw submission rows, newest first. ``data`` is the stored JSON text."""

    @abstractmethod
    def list_responses(self, limit: int = 100) -> list[dict[str, Any]]:
        """Raw response rows, newest first."""

    @abstractmethod
    def describe(self) -> StoreStatus: ...

    def is_degraded(self) -> bool:
        return False

    def close(self) -> None:  # noqa: B027
        pass
