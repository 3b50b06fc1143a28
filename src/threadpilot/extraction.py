"""Summary: Issue extraction through the OpenAI chat completion API.

Importance: Turns a Slack thread into a to-do title and description, retrying transient rate limits.
Alternatives: Ask reporters to fill in a form instead of summarizing threads.
"""

from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, TypeVar

from threadpilot.errors import ExtractionError, QuotaExhaustedError, RateLimitedError
from threadpilot.models import ExtractedIssue, ThreadMessage


logger = logging.getLogger(__name__)

T = TypeVar("T")

TITLE_PREFIX = "TITLE:"
DESCRIPTION_PREFIX = "DESCRIPTION:"
DEFAULT_TITLE = "Issue from Slack"
DEFAULT_DESCRIPTION = "No description extracted."
IMPLICIT_TITLE_LIMIT = 200
TITLE_LIMIT = 255
QUOTA_CODES = frozenset({"insufficient_quota", "billing_hard_limit_reached"})


class FailureKind(Enum):
    QUOTA_EXHAUSTED = "quota_exhausted"
    RATE_LIMITED = "rate_limited"
    OTHER = "other"


@dataclass(frozen=True)
class RetryPolicy:
    """Summary: Bounds for retrying rate-limited extraction calls.

    Importance: Caps attempts, not wall-clock time; a Retry-After hint can stretch one call.
    Alternatives: Retry until a deadline.
    """

    max_retries: int = 4
    initial_backoff: float = 2.0
    max_retry_after: float = 60.0


def classify_failure(exc: BaseException) -> FailureKind:
    """Summary: Classify an extraction failure without side effects.

    Importance: Quota exhaustion cannot be fixed by waiting, so it must never be retried.
    Alternatives: Retry every 429 regardless of its error code.
    """

    if not isinstance(exc, ExtractionError) or exc.status != 429:
        return FailureKind.OTHER
    if exc.code in QUOTA_CODES:
        return FailureKind.QUOTA_EXHAUSTED
    return FailureKind.RATE_LIMITED


def backoff_delay(policy: RetryPolicy, attempt: int, retry_after: float | None = None) -> float:
    """Delay before the attempt after ``attempt``; a server hint wins, capped."""

    if retry_after is not None and retry_after >= 0:
        return min(retry_after, policy.max_retry_after)
    return policy.initial_backoff * (2 ** (attempt - 1))


def call_with_retry(
    request_fn: Callable[[], T],
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Summary: Run ``request_fn`` with bounded retries on rate limiting.

    Importance: Absorbs short OpenAI rate-limit bursts while failing fast on quota and other errors.
    Alternatives: Rely on the SDK's built-in retry loop.
    """

    policy = policy or RetryPolicy()
    attempts = max(1, policy.max_retries)
    attempt = 0
    while True:
        attempt += 1
        try:
            return request_fn()
        except ExtractionError as exc:
            kind = classify_failure(exc)
            if kind is FailureKind.QUOTA_EXHAUSTED:
                raise QuotaExhaustedError(
                    "OpenAI quota exhausted; check the account's plan and billing.",
                    status=exc.status,
                    code=exc.code,
                ) from exc
            if kind is FailureKind.OTHER:
                raise
            if attempt >= attempts:
                raise RateLimitedError(
                    f"OpenAI rate limit persisted after {attempts} attempts: {exc}",
                    status=exc.status,
                    code=exc.code,
                    retry_after=exc.retry_after,
                ) from exc
            delay = backoff_delay(policy, attempt, exc.retry_after)
            logger.warning(
                "OpenAI rate limited (attempt %s/%s); retrying in %.1fs.",
                attempt,
                attempts,
                delay,
            )
            sleep(delay)


def parse_extraction_output(content: str) -> ExtractedIssue:
    """Summary: Parse TITLE and DESCRIPTION sections from model output.

    Importance: Tolerates models that skip a label or add leading text.
    Alternatives: Request JSON output and validate it.
    """

    title = ""
    description_lines: list[str] = []
    in_description = False
    for line in content.split("\n"):
        stripped = line.strip()
        upper = stripped.upper()
        if upper.startswith(TITLE_PREFIX):
            title = stripped[len(TITLE_PREFIX):].strip()
            in_description = False
        elif upper.startswith(DESCRIPTION_PREFIX):
            rest = stripped[len(DESCRIPTION_PREFIX):].strip()
            if rest:
                description_lines.append(rest)
            in_description = True
        elif in_description and stripped:
            description_lines.append(stripped)
        elif not title and stripped:
            title = stripped[:IMPLICIT_TITLE_LIMIT]
    description = "\n".join(description_lines).strip() or DEFAULT_DESCRIPTION
    return ExtractedIssue(title=(title or DEFAULT_TITLE)[:TITLE_LIMIT], description=description)


def format_thread_for_prompt(messages: list[ThreadMessage]) -> str:
    return "\n\n".join(f"[{message.display_name or message.user}]: {message.text}" for message in messages)


class ChatCompletionProvider(ABC):
    """Summary: Abstract interface for one system + user chat completion.

    Importance: Lets tests and alternative backends replace the OpenAI HTTP call.
    Alternatives: Call the OpenAI API directly from the extractor.
    """

    @abstractmethod
    def complete(self, system_prompt: str, user_content: str) -> str:
        """Return the assistant text, raising ExtractionError on failure."""


class OpenAiProvider(ChatCompletionProvider):
    """Summary: Chat completions over the OpenAI HTTP API.

    Importance: Exposes status, error code, and Retry-After so failures can be classified.
    Alternatives: Use the official OpenAI SDK.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.openai.com/v1",
        temperature: float = 0.3,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._temperature = temperature

    def complete(self, system_prompt: str, user_content: str) -> str:
        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            "temperature": self._temperature,
        }
        request = urllib.request.Request(
            url=f"{self._base_url}/chat/completions",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
            method="POST",
        )
        started = time.time()
        try:
            with urllib.request.urlopen(request, timeout=60) as response:
                raw = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            raise _error_from_http(exc) from exc
        except urllib.error.URLError as exc:
            raise ExtractionError(f"OpenAI request failed: {exc.reason}") from exc
        logger.info("OpenAI completion took %sms.", int((time.time() - started) * 1000))
        choices = raw.get("choices") or [{}]
        return ((choices[0].get("message") or {}).get("content") or "").strip()


def _error_from_http(exc: urllib.error.HTTPError) -> ExtractionError:
    body = exc.read().decode("utf-8", errors="replace")
    code = None
    message = body[:300] or str(exc.reason)
    try:
        error = json.loads(body).get("error") or {}
    except (ValueError, AttributeError):
        error = {}
    if isinstance(error, dict):
        code = error.get("code") or error.get("type")
        message = error.get("message") or message
    return ExtractionError(
        f"OpenAI API {exc.code}: {message}",
        status=exc.code,
        code=code,
        retry_after=_parse_retry_after(exc.headers.get("Retry-After") if exc.headers else None),
    )


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class IssueExtractor:
    """Summary: Extracts one issue per thread with retry and parsing.

    Importance: Keeps the retry driver and parser separate from the transport.
    Alternatives: Inline the OpenAI call in the pipeline.
    """

    def __init__(
        self,
        provider: ChatCompletionProvider,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._provider = provider
        self._policy = policy or RetryPolicy()
        self._sleep = sleep

    def extract(self, system_prompt: str, thread_text: str) -> ExtractedIssue:
        user_content = f"Slack thread:\n\n{thread_text}"
        content = call_with_retry(
            lambda: self._provider.complete(system_prompt, user_content),
            policy=self._policy,
            sleep=self._sleep,
        )
        if not content:
            raise ExtractionError("OpenAI returned empty content")
        return parse_extraction_output(content)
