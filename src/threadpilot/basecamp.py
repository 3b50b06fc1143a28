"""Summary: Minimal Basecamp 3 API client.

Importance: Creates to-dos, manages subscriptions, and lists people with one 401-aware retry.
Alternatives: Use a full Basecamp SDK.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable

from threadpilot.errors import RemoteServiceError
from threadpilot.models import BasecampPerson, CreatedTodo


logger = logging.getLogger(__name__)

BASECAMP_BASE_URL = "https://3.basecampapi.com"
USER_AGENT = "ThreadPilot (https://github.com/threadpilot/threadpilot)"
ERROR_BODY_LIMIT = 500

TokenSupplier = Callable[[bool], str]


@dataclass(frozen=True)
class BasecampResponse:
    """Status and body of one Basecamp HTTP exchange."""

    status: int
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8")) if self.body else None

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class BasecampClient:
    """Summary: Authenticated Basecamp client scoped to one account.

    Importance: Attaches a fresh bearer token to every call and recovers once from a stale token.
    Alternatives: Pass tokens explicitly to every request helper.
    """

    def __init__(
        self,
        account_id: str,
        token_supplier: TokenSupplier,
        refreshable: bool = True,
        base_url: str = BASECAMP_BASE_URL,
    ) -> None:
        self._account_id = account_id
        self._token_supplier = token_supplier
        self._refreshable = refreshable
        self._base_url = base_url.rstrip("/")

    @property
    def account_id(self) -> str:
        return self._account_id

    def authenticated_call(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> BasecampResponse:
        """Summary: Send one API request with a bearer token.

        Importance: A 401 forces exactly one token refresh and retry, never a loop.
        Alternatives: Retry every failed call with backoff.
        """

        response = self._send(method, path, payload, self._token_supplier(False))
        if response.status == 401 and self._refreshable:
            logger.info("Basecamp returned 401 for %s %s; refreshing token.", method, path)
            response = self._send(method, path, payload, self._token_supplier(True))
        if not response.ok:
            raise RemoteServiceError("Basecamp", response.status, response.text()[:ERROR_BODY_LIMIT])
        return response

    def create_todo(
        self,
        project_id: str,
        todolist_id: str,
        content: str,
        description: str = "",
        assignee_ids: list[int] | None = None,
    ) -> CreatedTodo:
        """Create a to-do in ``todolist_id`` and return its identifiers."""

        body: dict[str, Any] = {"content": content, "description": description}
        if assignee_ids:
            body["assignee_ids"] = assignee_ids
        response = self.authenticated_call(
            "POST", f"/buckets/{project_id}/todolists/{todolist_id}/todos.json", body
        )
        data = response.json() or {}
        todo = CreatedTodo(
            id=data["id"],
            app_url=data.get("app_url", ""),
            subscription_url=data.get("subscription_url"),
        )
        logger.info("Created Basecamp to-do %s.", todo.id)
        return todo

    def add_subscribers(self, project_id: str, recording_id: int, person_ids: list[int]) -> None:
        if not person_ids:
            return
        self.authenticated_call(
            "PUT",
            f"/buckets/{project_id}/recordings/{recording_id}/subscription.json",
            {"subscriptions": person_ids},
        )
        logger.info("Subscribed %s people to recording %s.", len(person_ids), recording_id)

    def list_people(self) -> list[BasecampPerson]:
        response = self.authenticated_call("GET", "/people.json")
        return [BasecampPerson.from_payload(item) for item in response.json() or []]

    def _send(
        self, method: str, path: str, payload: dict[str, Any] | None, token: str
    ) -> BasecampResponse:
        request = urllib.request.Request(
            url=f"{self._base_url}/{self._account_id}{path}",
            data=json.dumps(payload).encode("utf-8") if payload is not None else None,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            },
            method=method,
        )
        return _http_request(request)


def _http_request(request: urllib.request.Request) -> BasecampResponse:
    """Summary: Execute a request, returning HTTP error statuses instead of raising.

    Importance: Lets the caller branch on 401 before deciding whether to fail.
    Alternatives: Catch HTTPError at every call site.
    """

    try:
        with urllib.request.urlopen(request, timeout=30) as response:
            return BasecampResponse(status=response.status, body=response.read())
    except urllib.error.HTTPError as exc:
        return BasecampResponse(status=exc.code, body=exc.read() or b"")
    except urllib.error.URLError as exc:
        raise RemoteServiceError("Basecamp", 0, str(exc.reason)) from exc
