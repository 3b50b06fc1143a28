"""Summary: OAuth helpers for the Basecamp (37signals Launchpad) authorization server.

Importance: Builds the one-time authorization URL and performs code and refresh-token grants.
Alternatives: Use a generic OAuth client library.
"""

from __future__ import annotations

import json
import secrets
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from threadpilot.config import AppConfig
from threadpilot.errors import RefreshFailedError
from threadpilot.models import CredentialRecord, utc_now


LAUNCHPAD_AUTH_URL = "https://launchpad.37signals.com/authorization/new"
LAUNCHPAD_TOKEN_URL = "https://launchpad.37signals.com/authorization/token"
DEFAULT_EXPIRES_IN = 14 * 24 * 60 * 60
ERROR_BODY_LIMIT = 300


@dataclass(frozen=True)
class OAuthTokenResult:
    """Summary: Normalized token endpoint response.

    Importance: Applies the default lifetime and keeps optional fields explicit.
    Alternatives: Store the raw provider response without normalization.
    """

    access_token: str
    refresh_token: str | None
    expires_at: datetime
    raw: dict[str, Any]

    @staticmethod
    def from_response(payload: dict[str, Any], now: datetime | None = None) -> "OAuthTokenResult":
        """Summary: Build an OAuthTokenResult from a token endpoint payload.

        Importance: Servers may omit ``expires_in``; a two-week lifetime is assumed then.
        Alternatives: Treat a missing lifetime as "never expires".
        """

        expires_in = payload.get("expires_in")
        seconds = int(expires_in) if expires_in is not None else DEFAULT_EXPIRES_IN
        issued_at = now or utc_now()
        return OAuthTokenResult(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token") or None,
            expires_at=issued_at + timedelta(seconds=seconds),
            raw=payload,
        )

    def to_record(self, previous_refresh_token: str | None = None) -> CredentialRecord:
        """Keep the previous refresh token when the server did not issue a new one."""

        return CredentialRecord(
            access_token=self.access_token,
            refresh_token=self.refresh_token or previous_refresh_token,
            expires_at=self.expires_at,
        )


def create_state_token() -> str:
    """Summary: Generate a CSRF state token.

    Importance: Protects OAuth flows from CSRF attacks.
    Alternatives: Use server-side session storage with pre-generated tokens.
    """

    return secrets.token_urlsafe(24)


def build_authorization_url(config: AppConfig, state: str | None = None) -> str:
    """Summary: Build the Launchpad authorization URL.

    Importance: Starts the one-time interactive authorization that seeds the token file.
    Alternatives: Ask operators to paste access tokens manually.
    """

    _ensure_oauth_config(config.basecamp_client_id, config.basecamp_client_secret)
    params = {
        "type": "web_server",
        "client_id": config.basecamp_client_id,
        "redirect_uri": config.basecamp_redirect_uri,
    }
    if state:
        params["state"] = state
    return LAUNCHPAD_AUTH_URL + "?" + urllib.parse.urlencode(params)


def exchange_oauth_code(
    config: AppConfig, code: str, token_url: str = LAUNCHPAD_TOKEN_URL
) -> OAuthTokenResult:
    """Summary: Exchange an authorization code for tokens.

    Importance: Completes the interactive flow by retrieving access and refresh tokens.
    Alternatives: Use an external auth service.
    """

    _ensure_oauth_config(config.basecamp_client_id, config.basecamp_client_secret)
    payload = _token_payload(config, code)
    return OAuthTokenResult.from_response(_post_query(token_url, payload))


def refresh_oauth_token(
    client_id: str,
    client_secret: str,
    refresh_token: str,
    token_url: str = LAUNCHPAD_TOKEN_URL,
) -> OAuthTokenResult:
    """Summary: Exchange a refresh token for a new access token.

    Importance: Keeps Basecamp calls working without manual re-authorization.
    Alternatives: Re-run the authorization flow whenever a token expires.
    """

    _ensure_oauth_config(client_id, client_secret)
    payload = _refresh_payload(client_id, client_secret, refresh_token)
    return OAuthTokenResult.from_response(_post_query(token_url, payload))


def _token_payload(config: AppConfig, code: str) -> dict[str, str]:
    return {
        "type": "web_server",
        "client_id": config.basecamp_client_id,
        "client_secret": config.basecamp_client_secret,
        "redirect_uri": config.basecamp_redirect_uri,
        "code": code,
    }


def _refresh_payload(client_id: str, client_secret: str, refresh_token: str) -> dict[str, str]:
    return {
        "type": "refresh",
        "refresh_token": refresh_token,
        "client_id": client_id,
        "client_secret": client_secret,
    }


def _ensure_oauth_config(client_id: str, client_secret: str) -> None:
    """Summary: Validate that OAuth client credentials exist.

    Importance: Prevents confusing token endpoint errors when credentials are missing.
    Alternatives: Allow requests to fail at the provider endpoint.
    """

    if not client_id or not client_secret:
        raise ValueError("BASECAMP_CLIENT_ID and BASECAMP_CLIENT_SECRET are required")


def _post_query(url: str, params: dict[str, str]) -> dict[str, Any]:
    """Summary: POST to the token endpoint with query-string parameters and parse JSON.

    Importance: Launchpad expects grant parameters in the URL rather than a form body.
    Alternatives: Use requests or a provider SDK.
    """

    request = urllib.request.Request(
        url + "?" + urllib.parse.urlencode(params),
        data=b"",
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=10) as response:
            raw = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        error_body = exc.read().decode("utf-8", errors="replace")
        raise RefreshFailedError(exc.code, (error_body or str(exc.reason))[:ERROR_BODY_LIMIT]) from exc
    except urllib.error.URLError as exc:
        raise RefreshFailedError(None, str(exc.reason)[:ERROR_BODY_LIMIT]) from exc
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise RefreshFailedError(200, "invalid JSON response") from exc
    if not isinstance(payload, dict) or not payload.get("access_token"):
        raise RefreshFailedError(200, "response did not include an access_token")
    return payload
