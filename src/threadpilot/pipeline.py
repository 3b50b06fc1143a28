"""Summary: Orchestrates one reaction-triggered run from Slack thread to Basecamp to-do.

Importance: Fixes the per-event order: admission, extraction, to-do creation, status report.
Alternatives: Queue events and process them in a background worker.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from threadpilot.basecamp import BasecampClient
from threadpilot.errors import StatusReportFailedError
from threadpilot.extraction import IssueExtractor, format_thread_for_prompt
from threadpilot.models import ChannelBinding, CreatedTodo, ProgressHandle, ThreadMessage
from threadpilot.participants import ParticipantResolver, link_reporter
from threadpilot.slack import SlackGateway
from threadpilot.status import StatusReporter
from threadpilot.storage.sqlite_store import BindingStore
from threadpilot.throttle import CIRCUIT_OPEN, AdmissionController


logger = logging.getLogger(__name__)

WORKING_TEXT = "Extracting issue to Basecamp…"
CREATING_TEXT = "Creating Basecamp to-do…"
EMPTY_THREAD_TEXT = "Could not read thread messages."
UNBOUND_TEXT = "This channel is not bound to a Basecamp to-do list."
FAILURE_DETAIL_LIMIT = 200


@dataclass(frozen=True)
class PipelineSettings:
    """Per-process options for the pipeline."""

    trigger_emoji: str
    extraction_prompt: str
    default_project_id: str = ""
    default_todolist_id: str = ""
    add_participants_as_subscribers: bool = False


class IssuePipeline:
    """Summary: Runs the Slack-to-Basecamp flow for one trigger event.

    Importance: The only place where the admission, extraction, token, and status components meet.
    Alternatives: Let each component call the next one directly.
    """

    def __init__(
        self,
        settings: PipelineSettings,
        slack: SlackGateway,
        reporter: StatusReporter,
        admission: AdmissionController,
        extractor: IssueExtractor,
        basecamp: BasecampClient,
        participants: ParticipantResolver,
        bindings: BindingStore,
    ) -> None:
        self._settings = settings
        self._slack = slack
        self._reporter = reporter
        self._admission = admission
        self._extractor = extractor
        self._basecamp = basecamp
        self._participants = participants
        self._bindings = bindings

    def is_trigger(self, event: dict[str, Any]) -> bool:
        item = event.get("item") or {}
        return (
            event.get("type", "reaction_added") == "reaction_added"
            and event.get("reaction") == self._settings.trigger_emoji
            and item.get("type") == "message"
            and bool(item.get("channel"))
            and bool(item.get("ts"))
        )

    def handle_reaction(self, event: dict[str, Any]) -> CreatedTodo | None:
        """Summary: Handle a ``reaction_added`` event.

        Importance: Never raises; failures are logged and narrated back into the thread.
        Alternatives: Let exceptions reach the web framework.
        """

        if not self.is_trigger(event):
            return None
        channel_id = event["item"]["channel"]
        message_ts = event["item"]["ts"]
        handle = self._reporter.start(channel_id, message_ts, WORKING_TEXT)

        todo: CreatedTodo | None = None
        try:
            handle, text, todo = self._process(handle)
        except Exception as exc:
            logger.exception("Basecamp extraction failed for %s/%s.", channel_id, message_ts)
            text = f"Failed to extract to Basecamp: {str(exc)[:FAILURE_DETAIL_LIMIT]}"
        try:
            self._reporter.report(handle, text)
        except StatusReportFailedError:
            logger.exception("Could not report outcome for %s/%s.", channel_id, message_ts)
        return todo

    def resolve_binding(self, channel_id: str) -> ChannelBinding | None:
        binding = self._bindings.get_binding(channel_id)
        if binding:
            return binding
        if self._settings.default_project_id and self._settings.default_todolist_id:
            return ChannelBinding(
                channel_id=channel_id,
                project_id=self._settings.default_project_id,
                todolist_id=self._settings.default_todolist_id,
            )
        return None

    def _process(
        self, handle: ProgressHandle
    ) -> tuple[ProgressHandle, str, CreatedTodo | None]:
        binding = self.resolve_binding(handle.channel_id)
        if not binding:
            return handle, UNBOUND_TEXT, None

        messages = self._slack.fetch_thread(handle.channel_id, handle.thread_ts)
        if not messages:
            return handle, EMPTY_THREAD_TEXT, None

        decision = self._admission.allow()
        if not decision.allowed:
            if decision.reason == CIRCUIT_OPEN:
                text = (
                    "OpenAI temporarily paused after repeated failures. "
                    f"Try again in {decision.retry_after_seconds}s."
                )
            else:
                text = f"Too many OpenAI requests; try again in {decision.retry_after_seconds}s."
            return handle, text, None

        try:
            issue = self._extractor.extract(
                self._settings.extraction_prompt, format_thread_for_prompt(messages)
            )
        except Exception:
            self._admission.record_failure()
            raise
        self._admission.record_success()

        try:
            handle = self._reporter.report(handle, CREATING_TEXT)
        except StatusReportFailedError as exc:
            logger.warning("Progress update failed: %s", exc)

        description = self._cross_link(issue.description, messages, handle)
        todo = self._basecamp.create_todo(
            binding.project_id, binding.todolist_id, issue.title, description
        )
        if self._settings.add_participants_as_subscribers:
            self._subscribe_participants(binding, todo, messages)
        return handle, f"Issue was extracted to Basecamp: {todo.app_url}", todo

    def _cross_link(
        self, description: str, messages: list[ThreadMessage], handle: ProgressHandle
    ) -> str:
        """Mention the reporter and link the thread; either part is skipped when its lookup fails."""

        reporter = None
        permalink = None
        try:
            reporter = self._participants.resolve_reporter(messages[0].user)
        except Exception:
            logger.warning("Could not resolve reporter %s.", messages[0].user, exc_info=True)
        try:
            permalink = self._slack.get_permalink(handle.channel_id, handle.thread_ts)
        except Exception:
            logger.warning("Could not fetch permalink for %s.", handle.thread_ts, exc_info=True)
        return link_reporter(description, reporter, permalink)

    def _subscribe_participants(
        self, binding: ChannelBinding, todo: CreatedTodo, messages: list[ThreadMessage]
    ) -> None:
        slack_user_ids = list(dict.fromkeys(message.user for message in messages))
        try:
            person_ids = self._participants.resolve_person_ids(slack_user_ids)
            self._basecamp.add_subscribers(binding.project_id, todo.id, person_ids)
        except Exception:
            logger.warning("Failed to add subscribers to to-do %s.", todo.id, exc_info=True)
