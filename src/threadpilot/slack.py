"""Summary: Slack Web API access for threads, replies, and user lookups.

Importance: Wraps the few Slack calls the pipeline and status reporter need.
Alternatives: Call the Slack HTTP API directly with urllib.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError

from threadpilot.models import ThreadMessage


logger = logging.getLogger(__name__)

THREAD_READ_LIMIT = 200


@dataclass(frozen=True)
class SlackUser:
    """Display name and email of a Slack user."""

    id: str
    display_name: str
    email: str | None


class SlackGateway:
    """Summary: Thin adapter over ``slack_sdk.WebClient``.

    Importance: Gives the rest of the code plain return values instead of SDK responses.
    Alternatives: Pass the WebClient around and parse responses at each call site.
    """

    def __init__(self, client: WebClient, bot_user_id: str | None = None) -> None:
        self._client = client
        self.bot_user_id = bot_user_id or None

    @classmethod
    def from_token(cls, token: str, bot_user_id: str | None = None) -> "SlackGateway":
        return cls(WebClient(token=token), bot_user_id=bot_user_id)

    def list_replies(self, channel_id: str, thread_ts: str, limit: int) -> list[dict[str, Any]]:
        response = self._client.conversations_replies(channel=channel_id, ts=thread_ts, limit=limit)
        return list(response.get("messages") or [])

    def fetch_thread(
        self, channel_id: str, thread_ts: str, limit: int = THREAD_READ_LIMIT
    ) -> list[ThreadMessage]:
        """Summary: Read the parent message and replies in chronological order.

        Importance: Only human messages with text are kept; names are resolved for the transcript.
        Alternatives: Send raw user ids to the model.
        """

        messages = [
            ThreadMessage(user=item["user"], text=item["text"], ts=item.get("ts", ""))
            for item in self.list_replies(channel_id, thread_ts, limit)
            if item.get("user") and item.get("text")
        ]
        names: dict[str, str] = {}
        for message in messages:
            if message.user not in names:
                names[message.user] = self._display_name(message.user)
        return [
            ThreadMessage(
                user=message.user,
                text=message.text,
                ts=message.ts,
                display_name=names.get(message.user),
            )
            for message in messages
        ]

    def post_reply(self, channel_id: str, thread_ts: str, text: str) -> str:
        response = self._client.chat_postMessage(channel=channel_id, thread_ts=thread_ts, text=text)
        return response["ts"]

    def update_message(self, channel_id: str, message_ts: str, text: str) -> None:
        self._client.chat_update(channel=channel_id, ts=message_ts, text=text)

    def get_permalink(self, channel_id: str, message_ts: str) -> str | None:
        try:
            response = self._client.chat_getPermalink(channel=channel_id, message_ts=message_ts)
        except SlackApiError as exc:
            logger.warning("Could not fetch permalink for %s: %s", message_ts, exc.response.get("error"))
            return None
        return response.get("permalink")

    def get_user(self, user_id: str) -> SlackUser:
        """Look up a user; the email needs the users:read.email scope."""

        response = self._client.users_info(user=user_id)
        user = response.get("user") or {}
        profile = user.get("profile") or {}
        email = profile.get("email")
        return SlackUser(
            id=user_id,
            display_name=user.get("real_name") or user.get("name") or user_id,
            email=str(email).strip().lower() if email else None,
        )

    def is_own_message(self, message: dict[str, Any]) -> bool:
        if self.bot_user_id:
            return message.get("user") == self.bot_user_id
        return bool(message.get("bot_id"))

    def _display_name(self, user_id: str) -> str:
        try:
            return self.get_user(user_id).display_name
        except SlackApiError:
            return user_id
