"""Summary: Durable storage for Basecamp OAuth credentials.

Importance: Lets refreshed tokens survive restarts so the bot keeps working unattended.
Alternatives: Keep tokens only in environment variables and re-authorize on expiry.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from threadpilot.models import CredentialRecord


logger = logging.getLogger(__name__)


class CredentialStore:
    """Summary: JSON-file credential store with an environment fallback.

    Importance: Reads the persisted record first and falls back to a static token with unknown expiry.
    Alternatives: Persist tokens in SQLite alongside channel bindings.
    """

    def __init__(
        self,
        path: str,
        fallback_access_token: str | None = None,
        fallback_refresh_token: str | None = None,
    ) -> None:
        self._path = Path(path)
        self._fallback_access_token = fallback_access_token or None
        self._fallback_refresh_token = fallback_refresh_token or None

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> CredentialRecord | None:
        """Summary: Load the current credential record.

        Importance: A missing or unreadable file is not an error; the static token is used instead.
        Alternatives: Raise when the token file is absent.
        """

        if self._path.exists():
            try:
                payload = json.loads(self._path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning("Basecamp token file read failed: %s", exc)
            else:
                record = CredentialRecord.from_document(payload) if isinstance(payload, dict) else None
                if record:
                    return record
        if not self._fallback_access_token:
            return None
        return CredentialRecord(
            access_token=self._fallback_access_token,
            refresh_token=self._fallback_refresh_token,
            expires_at=None,
        )

    def save(self, record: CredentialRecord) -> None:
        """Persist ``record``, replacing any previous content."""

        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(record.to_document(), indent=2), encoding="utf-8")
        logger.info("Saved Basecamp tokens to %s.", self._path)
