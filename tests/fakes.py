"""Summary: Offline fakes for Slack, Basecamp, and OpenAI collaborators.

Importance: Keeps component tests deterministic without network access.
Alternatives: Record live API responses with a cassette library.
"""

from __future__ import annotations

from typing import Any

from slack_sdk.errors import SlackApiError

from threadpilot.extraction import ChatCompletionProvider
from threadpilot.models import BasecampPerson, CreatedTodo


class FakeWebClient:
    """In-memory stand-in for ``slack_sdk.WebClient``."""

    def __init__(self) -> None:
        self.replies: list[dict[str, Any]] = []
        self.users: dict[str, dict[str, Any]] = {}
        self.posted: list[tuple[str, str, str]] = []
        self.updated: list[tuple[str, str, str]] = []
        self.failing: set[str] = set()
        self.missing_ts: set[str] = set()
        self.errors: dict[str, Exception] = {}
        self._counter = 0

    def _check(self, method: str) -> None:
        if method in self.errors:
            raise self.errors[method]
        if method in self.failing:
            raise SlackApiError("request failed", {"ok": False, "error": "fatal_error"})

    def conversations_replies(self, channel: str, ts: str, limit: int) -> dict[str, Any]:
        self._check("conversations_replies")
        return {"ok": True, "messages": self.replies[:limit]}

    def chat_postMessage(self, channel: str, thread_ts: str, text: str) -> dict[str, Any]:
        self._check("chat_postMessage")
        self._counter += 1
        ts = f"2000.{self._counter:04d}"
        self.posted.append((channel, thread_ts, text))
        self.replies.append({"ts": ts, "bot_id": "B1", "text": text})
        return {"ok": True, "ts": ts}

    def chat_update(self, channel: str, ts: str, text: str) -> dict[str, Any]:
        self._check("chat_update")
        if ts in self.missing_ts:
            raise SlackApiError("update failed", {"ok": False, "error": "message_not_found"})
        self.updated.append((channel, ts, text))
        return {"ok": True, "ts": ts}

    def chat_getPermalink(self, channel: str, message_ts: str) -> dict[str, Any]:
        self._check("chat_getPermalink")
        return {"ok": True, "permalink": f"https://example.slack.com/archives/{channel}/p{message_ts}"}

    def users_info(self, user: str) -> dict[str, Any]:
        self._check("users_info")
        if user not in self.users:
            raise SlackApiError("user lookup failed", {"ok": False, "error": "user_not_found"})
        return {"ok": True, "user": self.users[user]}


class FakeProvider(ChatCompletionProvider):
    """Returns queued responses; exceptions in the queue are raised."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, str]] = []

    def complete(self, system_prompt: str, user_content: str) -> str:
        self.calls.append((system_prompt, user_content))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeBasecamp:
    """Records Basecamp calls without HTTP."""

    def __init__(self, people: list[BasecampPerson] | None = None) -> None:
        self.account_id = "999"
        self.people = people or []
        self.todos: list[dict[str, Any]] = []
        self.subscriptions: list[tuple[str, int, list[int]]] = []
        self.list_people_calls = 0
        self.subscribe_error: Exception | None = None
        self.people_error: Exception | None = None
        self.after_create: Any = None

    def create_todo(
        self,
        project_id: str,
        todolist_id: str,
        content: str,
        description: str = "",
        assignee_ids: list[int] | None = None,
    ) -> CreatedTodo:
        self.todos.append(
            {
                "project_id": project_id,
                "todolist_id": todolist_id,
                "content": content,
                "description": description,
            }
        )
        todo = CreatedTodo(id=len(self.todos), app_url=f"https://3.basecamp.com/999/todos/{len(self.todos)}")
        if self.after_create:
            self.after_create()
        return todo

    def add_subscribers(self, project_id: str, recording_id: int, person_ids: list[int]) -> None:
        if self.subscribe_error:
            raise self.subscribe_error
        self.subscriptions.append((project_id, recording_id, person_ids))

    def list_people(self) -> list[BasecampPerson]:
        self.list_people_calls += 1
        if self.people_error:
            raise self.people_error
        return list(self.people)


