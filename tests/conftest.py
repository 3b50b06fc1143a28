"""Summary: Shared fixtures for ThreadPilot tests.

Importance: Gives every test an isolated configuration and Slack client.
Alternatives: Build configuration inline in each test module.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from fakes import FakeWebClient
from threadpilot.config import AppConfig
from threadpilot.prompts import DEFAULT_EXTRACTION_PROMPT


@pytest.fixture
def fake_web_client() -> FakeWebClient:
    return FakeWebClient()


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Summary: Build an AppConfig for tests.

    Importance: Ensures tests use isolated token files and databases.
    Alternatives: Load AppConfig from environment variables.
    """

    return AppConfig(
        slack_bot_token="xoxb-test",
        slack_signing_secret="",
        slack_bot_user_id="",
        trigger_emoji="basecamp",
        openai_api_key="sk-test",
        openai_model="gpt-4o-mini",
        openai_base_url="https://api.openai.com/v1",
        openai_max_per_minute=15,
        openai_circuit_failures=5,
        openai_circuit_seconds=120,
        openai_max_retries=4,
        openai_initial_backoff=2.0,
        basecamp_account_id="999",
        basecamp_project_id="",
        basecamp_todolist_id="",
        basecamp_access_token="",
        basecamp_refresh_token="",
        basecamp_client_id="client-id",
        basecamp_client_secret="client-secret",
        basecamp_redirect_uri="http://localhost:8000/oauth/basecamp/callback",
        basecamp_token_file=str(tmp_path / "basecamp-tokens.json"),
        basecamp_add_participants_as_subscribers=False,
        db_path=str(tmp_path / "threadpilot.db"),
        api_key="",
        extraction_prompt=DEFAULT_EXTRACTION_PROMPT,
    )
