"""Summary: FastAPI application for ThreadPilot.

Importance: Receives Slack events, completes the Basecamp authorization, and manages channel bindings.
Alternatives: Use Slack Socket Mode and a CLI-only setup flow.
"""

from __future__ import annotations

import json
import logging
from datetime import timedelta
from typing import Any

from fastapi import BackgroundTasks, Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field
from slack_sdk.signature import SignatureVerifier

from threadpilot.app import build_context, build_pipeline
from threadpilot.config import AppConfig
from threadpilot.errors import ThreadPilotError
from threadpilot.models import utc_now
from threadpilot.oauth import build_authorization_url, create_state_token, exchange_oauth_code
from threadpilot.pipeline import IssuePipeline


logger = logging.getLogger(__name__)

OAUTH_STATE_TTL = timedelta(minutes=10)


class BindingRequest(BaseModel):
    """Summary: Request payload for binding a channel.

    Importance: Keeps Basecamp identifiers explicit for API clients.
    Alternatives: Accept identifiers as query parameters.
    """

    project_id: str = Field(min_length=1)
    todolist_id: str = Field(min_length=1)


def create_app(config: AppConfig, pipeline: IssuePipeline | None = None) -> FastAPI:
    """Summary: Create a FastAPI app wired to ThreadPilot components.

    Importance: Shares one admission controller and token manager across all requests.
    Alternatives: Instantiate components globally outside the factory.
    """

    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    app = FastAPI(title="ThreadPilot API", version="0.1.0")
    context = build_context(config)
    app.state.oauth_states = {}
    app.state.pipeline = pipeline
    verifier = SignatureVerifier(config.slack_signing_secret) if config.slack_signing_secret else None

    def _pipeline() -> IssuePipeline:
        if app.state.pipeline is None:
            app.state.pipeline = build_pipeline(context)
        return app.state.pipeline

    def _register_state(state: str) -> None:
        now = utc_now()
        app.state.oauth_states = {
            key: record
            for key, record in app.state.oauth_states.items()
            if now - record["created_at"] <= OAUTH_STATE_TTL
        }
        app.state.oauth_states[state] = {"created_at": now}

    def _validate_state(state: str) -> None:
        """Summary: Validate an OAuth state token.

        Importance: Reduces CSRF risks in the authorization callback.
        Alternatives: Use a dedicated session store for state.
        """

        record = app.state.oauth_states.pop(state, None)
        if not record:
            raise HTTPException(status_code=400, detail="Invalid OAuth state")
        if utc_now() - record["created_at"] > OAUTH_STATE_TTL:
            raise HTTPException(status_code=400, detail="OAuth state expired")

    def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
        """Summary: Enforce API key authentication when configured.

        Importance: Adds a minimal security layer for binding management.
        Alternatives: Use OAuth or session-based authentication.
        """

        if not config.api_key:
            return
        if x_api_key != config.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/slack/events")
    async def slack_events(request: Request, background_tasks: BackgroundTasks) -> dict[str, Any]:
        """Summary: Receive Slack Events API callbacks.

        Importance: Acknowledges within Slack's three-second window and runs the pipeline afterwards.
        Alternatives: Process the event inline and risk Slack re-delivering it.
        """

        body = await request.body()
        if verifier and not verifier.is_valid_request(body, dict(request.headers)):
            raise HTTPException(status_code=401, detail="Invalid Slack signature")
        try:
            payload = json.loads(body or b"{}")
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid JSON payload") from exc

        if payload.get("type") == "url_verification":
            return {"challenge": payload.get("challenge", "")}
        if request.headers.get("X-Slack-Retry-Num"):
            logger.info("Ignoring Slack retry %s.", request.headers.get("X-Slack-Retry-Num"))
            return {"ok": True}

        event = payload.get("event") or {}
        if payload.get("type") == "event_callback" and event.get("type") == "reaction_added":
            try:
                current = _pipeline()
            except ValueError as exc:
                logger.error("Cannot handle Slack event: %s", exc)
                raise HTTPException(status_code=503, detail=str(exc)) from exc
            if current.is_trigger(event):
                background_tasks.add_task(current.handle_reaction, event)
        return {"ok": True}

    @app.get("/oauth/basecamp/start", dependencies=[Depends(require_api_key)])
    def oauth_start() -> dict[str, str]:
        """Summary: Return the Basecamp authorization URL.

        Importance: Starts the one-time authorization that seeds the credential store.
        Alternatives: Use the CLI helper.
        """

        state = create_state_token()
        try:
            url = build_authorization_url(config, state)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        _register_state(state)
        return {"url": url, "state": state}

    @app.get("/oauth/basecamp/callback", response_class=HTMLResponse)
    def oauth_callback(code: str, state: str) -> str:
        """Summary: Exchange the authorization code and persist the tokens.

        Importance: After this the bot refreshes tokens on its own.
        Alternatives: Ask the operator to copy tokens into the environment.
        """

        _validate_state(state)
        try:
            result = exchange_oauth_code(config, code)
        except (ValueError, ThreadPilotError) as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        context.credentials.save(result.to_record())
        return "<h1>ThreadPilot connected to Basecamp</h1><p>You can close this window.</p>"

    @app.get("/bindings", dependencies=[Depends(require_api_key)])
    def list_bindings() -> list[dict[str, str]]:
        return [
            {
                "channel_id": binding.channel_id,
                "project_id": binding.project_id,
                "todolist_id": binding.todolist_id,
            }
            for binding in context.bindings.list_bindings()
        ]

    @app.put("/bindings/{channel_id}", dependencies=[Depends(require_api_key)])
    def set_binding(channel_id: str, payload: BindingRequest) -> dict[str, str]:
        binding = context.bindings.set_binding(channel_id, payload.project_id, payload.todolist_id)
        return {
            "channel_id": binding.channel_id,
            "project_id": binding.project_id,
            "todolist_id": binding.todolist_id,
        }

    @app.delete("/bindings/{channel_id}", dependencies=[Depends(require_api_key)])
    def delete_binding(channel_id: str) -> dict[str, str]:
        if not context.bindings.remove_binding(channel_id):
            raise HTTPException(status_code=404, detail="Binding not found")
        return {"status": "deleted"}

    return app


app = create_app(AppConfig.from_env())
