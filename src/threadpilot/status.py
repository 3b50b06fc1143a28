"""Summary: Progress reporting into the originating Slack thread.

Importance: Narrates each run through one message that is edited in place instead of spamming the thread.
Alternatives: Post a new reply for every progress step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from slack_sdk.errors import SlackClientError

from threadpilot.errors import StatusReportFailedError
from threadpilot.models import ProgressHandle
from threadpilot.slack import SlackGateway


logger = logging.getLogger(__name__)

REPLY_LOOKBACK = 50
SLACK_ERRORS = (SlackClientError, OSError)


@dataclass(frozen=True)
class StrategyResult:
    """Outcome of one reporting strategy; ``message_ts`` is the message written."""

    ok: bool
    message_ts: str | None = None
    error: Exception | None = None


Strategy = Callable[[ProgressHandle, str], StrategyResult]


class StatusReporter:
    """Summary: Updates a run's progress message with ordered fallbacks.

    Importance: A deleted or unknown status message must not silence the run.
    Alternatives: Always post new replies and accept duplicates.

    Strategies, tried in order until one succeeds:

    1. edit ``handle.message_ts`` in place;
    2. edit the newest reply in the thread written by this bot;
    3. post a new threaded reply and adopt it as the handle's message.
    """

    def __init__(self, gateway: SlackGateway, reply_lookback: int = REPLY_LOOKBACK) -> None:
        self._gateway = gateway
        self._reply_lookback = reply_lookback
        self._strategies: list[tuple[str, Strategy]] = [
            ("update_in_place", self._update_in_place),
            ("update_last_bot_reply", self._update_last_bot_reply),
            ("post_new_reply", self._post_new_reply),
        ]

    def start(self, channel_id: str, thread_ts: str, text: str) -> ProgressHandle:
        """Summary: Post the first "working" message and return its handle.

        Importance: Always starts a fresh message so an earlier run's outcome in the same thread is kept.
        Alternatives: Reuse the newest bot reply in the thread.
        """

        handle = ProgressHandle(channel_id=channel_id, thread_ts=thread_ts)
        result = self._post_new_reply(handle, text)
        if not result.ok:
            logger.warning("Could not post status message in %s: %s", channel_id, result.error)
            return handle
        return handle.with_message(result.message_ts or "")

    def report(self, handle: ProgressHandle, text: str) -> ProgressHandle:
        """Summary: Write ``text`` to the run's status message.

        Importance: Returns the handle to use for the next update, which may point at a new message.
        Alternatives: Mutate the handle in place.
        """

        errors: list[str] = []
        for name, strategy in self._strategies:
            result = strategy(handle, text)
            if result.ok:
                if result.message_ts and result.message_ts != handle.message_ts:
                    return handle.with_message(result.message_ts)
                return handle
            if result.error is not None:
                errors.append(f"{name}: {result.error}")
                logger.warning("Status strategy %s failed: %s", name, result.error)
        raise StatusReportFailedError(
            f"Could not report status in {handle.channel_id}/{handle.thread_ts}: " + "; ".join(errors)
        )

    def _update_in_place(self, handle: ProgressHandle, text: str) -> StrategyResult:
        if not handle.message_ts:
            return StrategyResult(ok=False)
        return self._update(handle.channel_id, handle.message_ts, text)

    def _update_last_bot_reply(self, handle: ProgressHandle, text: str) -> StrategyResult:
        try:
            replies = self._gateway.list_replies(
                handle.channel_id, handle.thread_ts, self._reply_lookback
            )
        except SLACK_ERRORS as exc:
            return StrategyResult(ok=False, error=exc)
        for message in reversed(replies):
            if message.get("ts") and self._gateway.is_own_message(message):
                return self._update(handle.channel_id, message["ts"], text)
        return StrategyResult(ok=False)

    def _post_new_reply(self, handle: ProgressHandle, text: str) -> StrategyResult:
        try:
            message_ts = self._gateway.post_reply(handle.channel_id, handle.thread_ts, text)
        except SLACK_ERRORS as exc:
            return StrategyResult(ok=False, error=exc)
        return StrategyResult(ok=True, message_ts=message_ts)

    def _update(self, channel_id: str, message_ts: str, text: str) -> StrategyResult:
        try:
            self._gateway.update_message(channel_id, message_ts, text)
        except SLACK_ERRORS as exc:
            return StrategyResult(ok=False, error=exc)
        return StrategyResult(ok=True, message_ts=message_ts)
