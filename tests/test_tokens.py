"""Summary: Tests for the Basecamp token lifecycle.

Importance: Ensures tokens refresh proactively, on demand, and only when possible.
Alternatives: Validate refresh behavior manually against Launchpad.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from threadpilot.errors import NoCredentialError, RefreshFailedError
from threadpilot.models import CredentialRecord
from threadpilot.oauth import OAuthTokenResult
from threadpilot.token_store import CredentialStore
from threadpilot.tokens import TokenManager


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class RecordingRefresh:
    def __init__(self, refresh_token: str | None = "new-refresh", error: Exception | None = None) -> None:
        self.calls: list[tuple[str, str, str, str]] = []
        self.refresh_token = refresh_token
        self.error = error

    def __call__(self, client_id: str, client_secret: str, refresh_token: str, token_url: str) -> OAuthTokenResult:
        self.calls.append((client_id, client_secret, refresh_token, token_url))
        if self.error:
            raise self.error
        payload = {"access_token": f"access-{len(self.calls)}", "expires_in": 3600}
        if self.refresh_token:
            payload["refresh_token"] = self.refresh_token
        return OAuthTokenResult.from_response(payload, now=NOW)


def _manager(store: CredentialStore, refresh: RecordingRefresh, **kwargs: object) -> TokenManager:
    options = {"client_id": "client-id", "client_secret": "client-secret"}
    options.update(kwargs)
    return TokenManager(store, refresh_fn=refresh, clock=lambda: NOW, **options)


def _store(tmp_path: Path, expires_at: datetime | None, refresh_token: str | None = "refresh") -> CredentialStore:
    store = CredentialStore(str(tmp_path / "tokens.json"))
    store.save(CredentialRecord(access_token="current", refresh_token=refresh_token, expires_at=expires_at))
    return store


def test_valid_token_is_returned_without_refresh(tmp_path: Path) -> None:
    """Summary: Tokens far from expiry are reused.

    Importance: Avoids calling the token endpoint on every Basecamp request.
    Alternatives: Refresh before every call.
    """

    refresh = RecordingRefresh()
    manager = _manager(_store(tmp_path, NOW + timedelta(hours=2)), refresh)
    assert manager.get_valid_token() == "current"
    assert refresh.calls == []


@pytest.mark.parametrize("offset", [timedelta(minutes=4), timedelta(minutes=5), timedelta(hours=-1)])
def test_token_near_or_past_expiry_is_refreshed_and_saved(tmp_path: Path, offset: timedelta) -> None:
    """Summary: Tokens inside the five-minute buffer are refreshed once and persisted.

    Importance: Refreshes ahead of expiry instead of racing it.
    Alternatives: Wait for a 401 before refreshing.
    """

    refresh = RecordingRefresh()
    store = _store(tmp_path, NOW + offset)
    manager = _manager(store, refresh)
    assert manager.get_valid_token() == "access-1"
    assert len(refresh.calls) == 1
    saved = store.load()
    assert saved is not None
    assert saved.access_token == "access-1"
    assert saved.refresh_token == "new-refresh"
    assert saved.expires_at == NOW + timedelta(seconds=3600)


def test_force_refresh_ignores_expiry(tmp_path: Path) -> None:
    refresh = RecordingRefresh()
    manager = _manager(_store(tmp_path, NOW + timedelta(days=10)), refresh)
    assert manager.get_valid_token(force_refresh=True) == "access-1"
    assert refresh.calls == [
        ("client-id", "client-secret", "refresh", "https://launchpad.37signals.com/authorization/token")
    ]


def test_unknown_expiry_triggers_refresh(tmp_path: Path) -> None:
    refresh = RecordingRefresh()
    manager = _manager(_store(tmp_path, None), refresh)
    assert manager.get_valid_token() == "access-1"


def test_refresh_keeps_previous_refresh_token_when_omitted(tmp_path: Path) -> None:
    refresh = RecordingRefresh(refresh_token=None)
    store = _store(tmp_path, NOW - timedelta(minutes=1))
    _manager(store, refresh).get_valid_token()
    saved = store.load()
    assert saved is not None
    assert saved.refresh_token == "refresh"


def test_without_client_credentials_token_is_returned_unchanged(tmp_path: Path) -> None:
    """Summary: Missing client credentials disable refresh entirely.

    Importance: Static tokens keep working until Basecamp rejects them.
    Alternatives: Fail at startup when client credentials are missing.
    """

    refresh = RecordingRefresh()
    manager = _manager(_store(tmp_path, NOW - timedelta(days=1)), refresh, client_secret="")
    assert manager.has_client_credentials is False
    assert manager.get_valid_token(force_refresh=True) == "current"
    assert refresh.calls == []


def test_without_refresh_token_token_is_returned_unchanged(tmp_path: Path) -> None:
    refresh = RecordingRefresh()
    manager = _manager(_store(tmp_path, NOW - timedelta(days=1), refresh_token=None), refresh)
    assert manager.get_valid_token(force_refresh=True) == "current"
    assert refresh.calls == []


def test_missing_credentials_raise(tmp_path: Path) -> None:
    manager = _manager(CredentialStore(str(tmp_path / "absent.json")), RecordingRefresh())
    with pytest.raises(NoCredentialError):
        manager.get_valid_token()


def test_failed_refresh_reuses_token_with_unknown_expiry(tmp_path: Path) -> None:
    refresh = RecordingRefresh(error=RefreshFailedError(400, "invalid_grant"))
    store = CredentialStore(
        str(tmp_path / "absent.json"), fallback_access_token="env-token", fallback_refresh_token="env-refresh"
    )
    manager = _manager(store, refresh)
    assert manager.get_valid_token() == "env-token"
    assert len(refresh.calls) == 1


def test_failed_refresh_with_known_expiry_propagates(tmp_path: Path) -> None:
    refresh = RecordingRefresh(error=RefreshFailedError(401, "unauthorized"))
    store = _store(tmp_path, NOW - timedelta(minutes=1))
    manager = _manager(store, refresh)
    with pytest.raises(RefreshFailedError):
        manager.get_valid_token()
    saved = store.load()
    assert saved is not None
    assert saved.access_token == "current"
