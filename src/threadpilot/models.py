"""Summary: Domain model dataclasses for ThreadPilot.

Importance: Defines the records shared by the token, extraction, ticketing, and status components.
Alternatives: Pass raw API dictionaries between components.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class CredentialRecord:
    """Summary: Basecamp OAuth credentials with optional expiry.

    Importance: A missing expiry means the token is assumed valid until a 401 says otherwise.
    Alternatives: Store the raw token endpoint response.
    """

    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None

    def to_document(self) -> dict[str, str]:
        document = {"access_token": self.access_token}
        if self.refresh_token:
            document["refresh_token"] = self.refresh_token
        if self.expires_at:
            document["expires_at"] = self.expires_at.isoformat()
        return document

    @staticmethod
    def from_document(payload: dict[str, Any]) -> "CredentialRecord | None":
        access_token = payload.get("access_token")
        if not access_token:
            return None
        return CredentialRecord(
            access_token=str(access_token),
            refresh_token=payload.get("refresh_token") or None,
            expires_at=parse_timestamp(payload.get("expires_at")),
        )


@dataclass(frozen=True)
class ThreadMessage:
    """Summary: One Slack message within the reported thread.

    Importance: Carries the speaker identity used for the transcript and cross-linking.
    Alternatives: Keep Slack payload dictionaries.
    """

    user: str
    text: str
    ts: str
    display_name: str | None = None


@dataclass(frozen=True)
class ExtractedIssue:
    """Title and description parsed from the model output."""

    title: str
    description: str


@dataclass(frozen=True)
class CreatedTodo:
    """A Basecamp to-do returned by the create call."""

    id: int
    app_url: str
    subscription_url: str | None = None


@dataclass(frozen=True)
class BasecampPerson:
    """Summary: Basecamp account member used for subscribers and mentions.

    Importance: Links Slack users to Basecamp people by email.
    Alternatives: Ask users to map identities manually.
    """

    id: int
    email: str | None
    name: str
    attachable_sgid: str | None = None

    @staticmethod
    def from_payload(payload: dict[str, Any]) -> "BasecampPerson":
        email = payload.get("email_address")
        return BasecampPerson(
            id=payload["id"],
            email=str(email).strip().lower() if email else None,
            name=payload.get("name") or "Someone",
            attachable_sgid=payload.get("attachable_sgid"),
        )


@dataclass(frozen=True)
class ProgressHandle:
    """Summary: Reference to the single status message of one triggering event.

    Importance: Lets every progress update overwrite one message instead of posting many.
    Alternatives: Post a new reply for each step.
    """

    channel_id: str
    thread_ts: str
    message_ts: str | None = None

    def with_message(self, message_ts: str) -> "ProgressHandle":
        return replace(self, message_ts=message_ts)


@dataclass(frozen=True)
class AdmissionDecision:
    """Outcome of an admission check; ``reason`` is set only when refused."""

    allowed: bool
    reason: str | None = None
    retry_after_seconds: int = 0


@dataclass(frozen=True)
class ChannelBinding:
    """Slack channel bound to a Basecamp project and to-do list."""

    channel_id: str
    project_id: str
    todolist_id: str


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Summary: Parse an ISO-8601 timestamp into an aware UTC datetime.

    Importance: Token files written by other tools may use a trailing ``Z`` or omit the offset.
    Alternatives: Require a single strict timestamp format.
    """

    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
