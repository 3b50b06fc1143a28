"""Summary: Application factory wiring ThreadPilot components.

Importance: Builds the process-wide admission controller and token manager exactly once.
Alternatives: Instantiate clients manually in each entrypoint.
"""

from __future__ import annotations

from dataclasses import dataclass

from threadpilot.basecamp import BasecampClient
from threadpilot.config import AppConfig
from threadpilot.extraction import IssueExtractor, OpenAiProvider, RetryPolicy
from threadpilot.participants import ParticipantResolver
from threadpilot.pipeline import IssuePipeline, PipelineSettings
from threadpilot.slack import SlackGateway
from threadpilot.status import StatusReporter
from threadpilot.storage.sqlite_store import BindingStore
from threadpilot.throttle import AdmissionController
from threadpilot.token_store import CredentialStore
from threadpilot.tokens import TokenManager


@dataclass(frozen=True)
class AppContext:
    """Summary: Shared components for CLI and HTTP entrypoints.

    Importance: Every event handler shares one admission state and one credential owner.
    Alternatives: Use module-level globals.
    """

    config: AppConfig
    credentials: CredentialStore
    tokens: TokenManager
    bindings: BindingStore
    admission: AdmissionController


def build_context(config: AppConfig) -> AppContext:
    """Summary: Build components that need no Slack or OpenAI credentials.

    Importance: Lets the CLI manage tokens and bindings before the bot is fully configured.
    Alternatives: Require the full configuration for every command.
    """

    credentials = CredentialStore(
        config.basecamp_token_file,
        fallback_access_token=config.basecamp_access_token,
        fallback_refresh_token=config.basecamp_refresh_token,
    )
    tokens = TokenManager(
        credentials,
        client_id=config.basecamp_client_id,
        client_secret=config.basecamp_client_secret,
    )
    bindings = BindingStore(config.db_path)
    bindings.initialize()
    admission = AdmissionController(
        max_per_minute=config.openai_max_per_minute,
        circuit_failures=config.openai_circuit_failures,
        circuit_seconds=config.openai_circuit_seconds,
    )
    return AppContext(
        config=config,
        credentials=credentials,
        tokens=tokens,
        bindings=bindings,
        admission=admission,
    )


def build_basecamp_client(context: AppContext) -> BasecampClient:
    return BasecampClient(
        account_id=context.config.basecamp_account_id,
        token_supplier=lambda force_refresh: context.tokens.get_valid_token(force_refresh),
        refreshable=context.tokens.has_client_credentials,
    )


def build_pipeline(context: AppContext, slack: SlackGateway | None = None) -> IssuePipeline:
    """Summary: Wire the full reaction pipeline.

    Importance: Validates the settings the bot cannot run without.
    Alternatives: Fail lazily on the first event.
    """

    config = context.config
    config.require("slack_bot_token", "openai_api_key", "basecamp_account_id")
    slack = slack or SlackGateway.from_token(config.slack_bot_token, config.slack_bot_user_id)
    basecamp = build_basecamp_client(context)
    extractor = IssueExtractor(
        OpenAiProvider(config.openai_api_key or "", config.openai_model, config.openai_base_url),
        policy=RetryPolicy(
            max_retries=config.openai_max_retries,
            initial_backoff=config.openai_initial_backoff,
        ),
    )
    return IssuePipeline(
        settings=PipelineSettings(
            trigger_emoji=config.trigger_emoji,
            extraction_prompt=config.extraction_prompt,
            default_project_id=config.basecamp_project_id,
            default_todolist_id=config.basecamp_todolist_id,
            add_participants_as_subscribers=config.basecamp_add_participants_as_subscribers,
        ),
        slack=slack,
        reporter=StatusReporter(slack),
        admission=context.admission,
        extractor=extractor,
        basecamp=basecamp,
        participants=ParticipantResolver(slack, basecamp),
        bindings=context.bindings,
    )
