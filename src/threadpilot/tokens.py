"""Summary: Basecamp access token lifecycle management.

Importance: Refreshes tokens ahead of expiry and on demand after a 401 so unattended runs keep working.
Alternatives: Re-run the authorization flow whenever Basecamp rejects a token.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable

from threadpilot.errors import NoCredentialError, RefreshFailedError
from threadpilot.models import CredentialRecord, utc_now
from threadpilot.oauth import LAUNCHPAD_TOKEN_URL, OAuthTokenResult, refresh_oauth_token
from threadpilot.token_store import CredentialStore


logger = logging.getLogger(__name__)

EXPIRY_BUFFER = timedelta(minutes=5)

RefreshFn = Callable[[str, str, str, str], OAuthTokenResult]


class TokenManager:
    """Summary: Hands out a usable Basecamp access token.

    Importance: Owns the credential record; callers never cache the token beyond one operation.
    Alternatives: Refresh on a background timer.

    Refreshes are serialized within one process. A caller that waited on the lock
    re-reads the record first, so it reuses a token another thread just refreshed.
    """

    def __init__(
        self,
        store: CredentialStore,
        client_id: str | None = None,
        client_secret: str | None = None,
        token_url: str = LAUNCHPAD_TOKEN_URL,
        refresh_fn: RefreshFn = refresh_oauth_token,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._client_id = client_id or ""
        self._client_secret = client_secret or ""
        self._token_url = token_url
        self._refresh_fn = refresh_fn
        self._clock = clock
        self._refresh_lock = threading.Lock()
        self.has_client_credentials = bool(self._client_id and self._client_secret)

    def can_refresh(self, record: CredentialRecord) -> bool:
        return self.has_client_credentials and bool(record.refresh_token)

    def get_valid_token(self, force_refresh: bool = False) -> str:
        """Summary: Return an access token, refreshing when forced or close to expiry.

        Importance: Refreshes five minutes early rather than racing the expiry.
        Alternatives: Always refresh after the first 401.
        """

        record = self._load()
        if not self.can_refresh(record):
            return record.access_token
        if not (force_refresh or self._expires_soon(record.expires_at)):
            return record.access_token
        with self._refresh_lock:
            current = self._load()
            if not force_refresh and not self._expires_soon(current.expires_at):
                return current.access_token
            return self._refresh(current)

    def _load(self) -> CredentialRecord:
        record = self._store.load()
        if not record:
            raise NoCredentialError(
                "No Basecamp token. Set BASECAMP_ACCESS_TOKEN or run `threadpilot oauth-url` "
                "and complete the authorization."
            )
        return record

    def _expires_soon(self, expires_at: datetime | None) -> bool:
        if expires_at is None:
            return True
        return expires_at - EXPIRY_BUFFER <= self._clock()

    def _refresh(self, record: CredentialRecord) -> str:
        try:
            result = self._refresh_fn(
                self._client_id,
                self._client_secret,
                record.refresh_token or "",
                self._token_url,
            )
        except RefreshFailedError as exc:
            if record.expires_at is None:
                logger.warning(
                    "Basecamp token refresh failed (%s); reusing token with unknown expiry.", exc
                )
                return record.access_token
            raise
        refreshed = result.to_record(previous_refresh_token=record.refresh_token)
        self._store.save(refreshed)
        logger.info("Refreshed Basecamp access token; expires at %s.", refreshed.expires_at)
        return refreshed.access_token
