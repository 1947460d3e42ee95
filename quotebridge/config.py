"""Runtime configuration read from environment variables."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

_TRUTHY = {"1", "true", "yes", "on"}


def _default_fallback_db_path() -> str:
    return str(Path(tempfile.gettempdir()) / "quotebridge-submissions.db")


@dataclass(frozen=True)
class Settings:
    """Settings for the bridge application.

    ``destination_url`` may be empty: the proxy reports the missing
    destination per request rather than refusing to start.
    """

    destination_url: str | None = None
    public_base_url: str | None = None
    db_path: str = "data/submissions.db"
    fallback_db_path: str = field(default_factory=_default_fallback_db_path)
    admin_key: str | None = None
    latest_fallback: bool = False
    webhook_timeout: float = 30.0
    audit_log_path: str | None = None

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            destination_url=os.environ.get("WEBHOOK_DESTINATION_URL") or None,
            public_base_url=os.environ.get("PUBLIC_BASE_URL") or None,
            db_path=os.environ.get("SUBMISSIONS_DB_PATH", "data/submissions.db"),
            fallback_db_path=os.environ.get(
                "SUBMISSIONS_DB_FALLBACK_PATH", _default_fallback_db_path(),
            ),
            admin_key=os.environ.get("ADMIN_KEY") or None,
            latest_fallback=(
                os.environ.get("CALLBACK_LATEST_FALLBACK", "false").strip().lower() in _TRUTHY
            ),
            webhook_timeout=float(os.environ.get("WEBHOOK_TIMEOUT_SECONDS", "30")),
            audit_log_path=os.environ.get("AUDIT_LOG_PATH") or None,
        )

    @property
    def db_candidates(self) -> list[str]:
        """Durable store paths in the order they should be tried."""
        paths = [self.db_path]
        if self.fallback_db_path and self.fallback_db_path != self.db_path:
            paths.append(self.fallback_db_path)
        return paths
