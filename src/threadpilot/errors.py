"""Summary: Exception types shared across ThreadPilot components.

Importance: Lets the pipeline tell credential, ticketing, extraction and reporting failures apart.
Alternatives: Raise RuntimeError everywhere and inspect messages.
"""

from __future__ import annotations


class ThreadPilotError(RuntimeError):
    """Base class for ThreadPilot failures."""


class NoCredentialError(ThreadPilotError):
    """Raised when no Basecamp token is stored or configured."""


class RefreshFailedError(ThreadPilotError):
    """Raised when the token endpoint rejects a refresh grant."""

    def __init__(self, status: int | None, body: str) -> None:
        self.status = status
        self.body = body
        super().__init__(f"Basecamp token refresh failed: {status} - {body}")


class RemoteServiceError(ThreadPilotError):
    """Summary: Non-success response from a remote HTTP API.

    Importance: Carries the status and a truncated body for operator-facing messages.
    Alternatives: Surface raw urllib HTTPError objects.
    """

    def __init__(self, service: str, status: int, body: str) -> None:
        self.service = service
        self.status = status
        self.body = body
        super().__init__(f"{service} API {status}: {body}")


class ExtractionError(ThreadPilotError):
    """Raised when the extraction service call fails or returns nothing usable."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        code: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        self.status = status
        self.code = code
        self.retry_after = retry_after
        super().__init__(message)


class QuotaExhaustedError(ExtractionError):
    """Raised when the OpenAI account has no remaining quota."""


class RateLimitedError(ExtractionError):
    """Raised when rate limiting persists after every retry."""


class StatusReportFailedError(ThreadPilotError):
    """Raised when no status strategy managed to write to the thread."""
