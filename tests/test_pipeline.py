"""Summary: End-to-end tests for the reaction pipeline with offline fakes.

Importance: Confirms the order of admission, extraction, to-do creation, and status reporting.
Alternatives: Run the bot against real Slack, OpenAI, and Basecamp workspaces.
"""

from __future__ import annotations

from pathlib import Path

from fakes import FakeBasecamp, FakeProvider, FakeWebClient
from threadpilot.errors import ExtractionError, RemoteServiceError
from threadpilot.extraction import IssueExtractor
from threadpilot.models import BasecampPerson
from threadpilot.participants import ParticipantResolver
from threadpilot.pipeline import (
    CREATING_TEXT,
    EMPTY_THREAD_TEXT,
    UNBOUND_TEXT,
    WORKING_TEXT,
    IssuePipeline,
    PipelineSettings,
)
from threadpilot.slack import SlackGateway
from threadpilot.status import StatusReporter
from threadpilot.storage.sqlite_store import BindingStore
from threadpilot.throttle import AdmissionController


EVENT = {
    "type": "reaction_added",
    "user": "U9",
    "reaction": "basecamp",
    "item": {"type": "message", "channel": "C1", "ts": "1000.1"},
}
EXTRACTION = "TITLE: Checkout button broken\nDESCRIPTION: Clicking pay does nothing.\n\nReported by Ana in Slack"


class Harness:
    def __init__(
        self,
        tmp_path: Path,
        client: FakeWebClient,
        *responses: object,
        bind: bool = True,
        subscribe: bool = False,
        default_ids: tuple[str, str] = ("", ""),
    ) -> None:
        self.now = 1000.0
        self.client = client
        client.replies = [
            {"ts": "1000.1", "user": "U1", "text": "Checkout is broken"},
            {"ts": "1000.2", "user": "U2", "text": "Confirmed on my side"},
        ]
        client.users = {
            "U1": {"real_name": "Ana", "profile": {"email": "ana@example.com"}},
            "U2": {"real_name": "Bo", "profile": {"email": "bo@example.com"}},
        }
        self.provider = FakeProvider(*(responses or (EXTRACTION,)))
        self.basecamp = FakeBasecamp(
            [
                BasecampPerson(id=1, email="ana@example.com", name="Ana", attachable_sgid="sgid-ana"),
                BasecampPerson(id=2, email="bo@example.com", name="Bo"),
            ]
        )
        self.admission = AdmissionController(max_per_minute=15, clock=lambda: self.now)
        self.bindings = BindingStore(str(tmp_path / "threadpilot.db"))
        self.bindings.initialize()
        if bind:
            self.bindings.set_binding("C1", "123", "456")
        slack = SlackGateway(client)
        self.pipeline = IssuePipeline(
            settings=PipelineSettings(
                trigger_emoji="basecamp",
                extraction_prompt="Extract the issue.",
                default_project_id=default_ids[0],
                default_todolist_id=default_ids[1],
                add_participants_as_subscribers=subscribe,
            ),
            slack=slack,
            reporter=StatusReporter(slack),
            admission=self.admission,
            extractor=IssueExtractor(self.provider, sleep=lambda _: None),
            basecamp=self.basecamp,
            participants=ParticipantResolver(slack, self.basecamp),
            bindings=self.bindings,
        )

    def status_texts(self) -> list[str]:
        return [text for _, _, text in self.client.posted] + [text for _, _, text in self.client.updated]


def test_reaction_creates_todo_and_reports_link(tmp_path: Path, fake_web_client: FakeWebClient) -> None:
    """Summary: A trigger reaction produces one to-do and one status message.

    Importance: Covers the primary user journey from emoji to Basecamp link.
    Alternatives: Verify each component separately.
    """

    harness = Harness(tmp_path, fake_web_client)
    todo = harness.pipeline.handle_reaction(EVENT)
    assert todo is not None
    assert harness.provider.calls == [
        ("Extract the issue.", "Slack thread:\n\n[Ana]: Checkout is broken\n\n[Bo]: Confirmed on my side")
    ]
    created = harness.basecamp.todos[0]
    assert created["project_id"] == "123"
    assert created["todolist_id"] == "456"
    assert created["content"] == "Checkout button broken"
    assert '<bc-mention sgid="sgid-ana">Ana</bc-mention>' in created["description"]
    assert '<a href="https://example.slack.com/archives/C1/p1000.1">Slack</a>' in created["description"]
    assert fake_web_client.posted == [("C1", "1000.1", WORKING_TEXT)]
    assert [text for _, _, text in fake_web_client.updated] == [
        CREATING_TEXT,
        f"Issue was extracted to Basecamp: {todo.app_url}",
    ]
    assert {ts for _, ts, _ in fake_web_client.updated} == {"2000.0001"}
    assert harness.basecamp.subscriptions == []


def test_non_trigger_reaction_is_ignored(tmp_path: Path, fake_web_client: FakeWebClient) -> None:
    harness = Harness(tmp_path, fake_web_client)
    assert harness.pipeline.handle_reaction({**EVENT, "reaction": "eyes"}) is None
    assert harness.pipeline.handle_reaction({**EVENT, "item": {"type": "file", "channel": "C1", "ts": "1"}}) is None
    assert fake_web_client.posted == []
    assert harness.provider.calls == []


def test_rate_limited_run_skips_extraction(tmp_path: Path, fake_web_client: FakeWebClient) -> None:
    harness = Harness(tmp_path, fake_web_client)
    harness.admission.max_per_minute = 1
    assert harness.admission.allow().allowed
    assert harness.pipeline.handle_reaction(EVENT) is None
    assert harness.provider.calls == []
    assert harness.basecamp.todos == []
    assert fake_web_client.updated[-1][2] == "Too many OpenAI requests; try again in 60s."


def test_open_circuit_skips_extraction(tmp_path: Path, fake_web_client: FakeWebClient) -> None:
    harness = Harness(tmp_path, fake_web_client)
    for _ in range(5):
        harness.admission.record_failure()
    harness.pipeline.handle_reaction(EVENT)
    assert harness.provider.calls == []
    assert fake_web_client.updated[-1][2] == (
        "OpenAI temporarily paused after repeated failures. Try again in 120s."
    )


def test_extraction_failure_is_recorded_and_reported(tmp_path: Path, fake_web_client: FakeWebClient) -> None:
    """Summary: Failed extractions count toward the circuit breaker and reach the thread.

    Importance: Users see why nothing was created and repeated failures stop new calls.
    Alternatives: Fail silently and rely on server logs.
    """

    harness = Harness(tmp_path, fake_web_client, ExtractionError("OpenAI API 500: boom", status=500))
    assert harness.pipeline.handle_reaction(EVENT) is None
    assert harness.admission.state.consecutive_failures == 1
    assert harness.basecamp.todos == []
    assert fake_web_client.updated[-1][2] == "Failed to extract to Basecamp: OpenAI API 500: boom"


def test_success_resets_failure_count(tmp_path: Path, fake_web_client: FakeWebClient) -> None:
    harness = Harness(tmp_path, fake_web_client)
    harness.admission.record_failure()
    harness.pipeline.handle_reaction(EVENT)
    assert harness.admission.state.consecutive_failures == 0


def test_unbound_channel_is_reported(tmp_path: Path, fake_web_client: FakeWebClient) -> None:
    harness = Harness(tmp_path, fake_web_client, bind=False)
    assert harness.pipeline.handle_reaction(EVENT) is None
    assert harness.provider.calls == []
    assert fake_web_client.updated[-1][2] == UNBOUND_TEXT


def test_default_list_is_used_without_binding(tmp_path: Path, fake_web_client: FakeWebClient) -> None:
    harness = Harness(tmp_path, fake_web_client, bind=False, default_ids=("7", "8"))
    harness.pipeline.handle_reaction(EVENT)
    assert harness.basecamp.todos[0]["project_id"] == "7"
    assert harness.basecamp.todos[0]["todolist_id"] == "8"


def test_empty_thread_is_reported(tmp_path: Path, fake_web_client: FakeWebClient) -> None:
    harness = Harness(tmp_path, fake_web_client)
    fake_web_client.replies = []
    assert harness.pipeline.handle_reaction(EVENT) is None
    assert harness.provider.calls == []
    assert fake_web_client.updated[-1][2] == EMPTY_THREAD_TEXT


def test_final_status_failure_still_returns_todo(tmp_path: Path, fake_web_client: FakeWebClient) -> None:
    harness = Harness(tmp_path, fake_web_client)
    harness.basecamp.after_create = lambda: fake_web_client.failing.update(
        {"chat_update", "conversations_replies", "chat_postMessage"}
    )
    todo = harness.pipeline.handle_reaction(EVENT)
    assert todo is not None
    assert len(harness.basecamp.todos) == 1


def test_participants_are_subscribed(tmp_path: Path, fake_web_client: FakeWebClient) -> None:
    harness = Harness(tmp_path, fake_web_client, subscribe=True)
    todo = harness.pipeline.handle_reaction(EVENT)
    assert todo is not None
    assert harness.basecamp.subscriptions == [("123", todo.id, [1, 2])]


def test_subscription_failure_does_not_fail_run(tmp_path: Path, fake_web_client: FakeWebClient) -> None:
    harness = Harness(tmp_path, fake_web_client, subscribe=True)
    harness.basecamp.subscribe_error = RemoteServiceError("Basecamp", 403, "forbidden")
    todo = harness.pipeline.handle_reaction(EVENT)
    assert todo is not None
    assert fake_web_client.updated[-1][2] == f"Issue was extracted to Basecamp: {todo.app_url}"


def test_permalink_transport_error_keeps_todo(tmp_path: Path, fake_web_client: FakeWebClient) -> None:
    """Summary: A network failure while fetching the permalink still creates the to-do.

    Importance: Cross-linking is optional and must never block ticket creation.
    Alternatives: Fail the run and ask the user to react again.
    """

    harness = Harness(tmp_path, fake_web_client)
    fake_web_client.errors["chat_getPermalink"] = ConnectionError("connection reset")
    todo = harness.pipeline.handle_reaction(EVENT)
    assert todo is not None
    description = harness.basecamp.todos[0]["description"]
    assert '<bc-mention sgid="sgid-ana">Ana</bc-mention>' in description
    assert "<a href=" not in description
    assert fake_web_client.updated[-1][2] == f"Issue was extracted to Basecamp: {todo.app_url}"


def test_malformed_people_payload_keeps_todo(tmp_path: Path, fake_web_client: FakeWebClient) -> None:
    harness = Harness(tmp_path, fake_web_client, subscribe=True)
    harness.basecamp.people_error = ValueError("Expecting value: line 1 column 1 (char 0)")
    todo = harness.pipeline.handle_reaction(EVENT)
    assert todo is not None
    description = harness.basecamp.todos[0]["description"]
    assert "bc-mention" not in description
    assert '<a href="https://example.slack.com/archives/C1/p1000.1">Slack</a>' in description
    assert harness.basecamp.subscriptions == []
    assert fake_web_client.updated[-1][2] == f"Issue was extracted to Basecamp: {todo.app_url}"
