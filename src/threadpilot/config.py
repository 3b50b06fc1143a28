"""Summary: Application configuration for ThreadPilot.

Importance: Centralizes environment, .env, and config defaults for consistent behavior.
Alternatives: Use a dedicated settings library like Pydantic Settings.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from threadpilot.prompts import load_extraction_prompt


PROJECT_DEFAULTS_PATH = Path(__file__).resolve().parents[2] / "config" / "defaults.json"


@dataclass(frozen=True)
class AppConfig:
    """Summary: Holds configuration values for Slack, OpenAI, and Basecamp.

    Importance: Ensures all components derive settings from a single source of truth.
    Alternatives: Read environment variables ad hoc inside each client.
    """

    slack_bot_token: str
    slack_signing_secret: str
    slack_bot_user_id: str
    trigger_emoji: str
    openai_api_key: str | None
    openai_model: str
    openai_base_url: str
    openai_max_per_minute: int
    openai_circuit_failures: int
    openai_circuit_seconds: int
    openai_max_retries: int
    openai_initial_backoff: float
    basecamp_account_id: str
    basecamp_project_id: str
    basecamp_todolist_id: str
    basecamp_access_token: str
    basecamp_refresh_token: str
    basecamp_client_id: str
    basecamp_client_secret: str
    basecamp_redirect_uri: str
    basecamp_token_file: str
    basecamp_add_participants_as_subscribers: bool
    db_path: str
    api_key: str
    extraction_prompt: str

    @staticmethod
    def from_env(defaults_path: Path | None = None) -> "AppConfig":
        """Summary: Build configuration from defaults, .env, and environment.

        Importance: Keeps every variable defined in one defaults file while allowing overrides.
        Alternatives: Parse only environment variables without a defaults file.
        """

        path = defaults_path or Path("config") / "defaults.json"
        if defaults_path is None and not path.exists():
            path = PROJECT_DEFAULTS_PATH
        defaults = load_defaults(path)
        load_dotenv(Path(".env"))
        return AppConfig(
            slack_bot_token=os.getenv("SLACK_BOT_TOKEN", defaults["slack_bot_token"]),
            slack_signing_secret=os.getenv(
                "SLACK_SIGNING_SECRET", defaults["slack_signing_secret"]
            ),
            slack_bot_user_id=os.getenv("SLACK_BOT_USER_ID", defaults["slack_bot_user_id"]),
            trigger_emoji=os.getenv("TRIGGER_EMOJI", defaults["trigger_emoji"]),
            openai_api_key=os.getenv("OPENAI_API_KEY") or defaults["openai_api_key"] or None,
            openai_model=os.getenv("OPENAI_MODEL", defaults["openai_model"]),
            openai_base_url=os.getenv("OPENAI_BASE_URL", defaults["openai_base_url"]),
            openai_max_per_minute=_int_setting(
                "OPENAI_MAX_REQUESTS_PER_MINUTE", defaults["openai_max_per_minute"], minimum=1
            ),
            openai_circuit_failures=_int_setting(
                "OPENAI_CIRCUIT_BREAKER_FAILURES", defaults["openai_circuit_failures"], minimum=1
            ),
            openai_circuit_seconds=_int_setting(
                "OPENAI_CIRCUIT_BREAKER_SECONDS", defaults["openai_circuit_seconds"], minimum=30
            ),
            openai_max_retries=_int_setting(
                "OPENAI_MAX_RETRIES", defaults["openai_max_retries"], minimum=1
            ),
            openai_initial_backoff=float(
                os.getenv("OPENAI_INITIAL_BACKOFF_SECONDS", defaults["openai_initial_backoff"])
            ),
            basecamp_account_id=os.getenv("BASECAMP_ACCOUNT_ID", defaults["basecamp_account_id"]),
            basecamp_project_id=os.getenv("BASECAMP_PROJECT_ID", defaults["basecamp_project_id"]),
            basecamp_todolist_id=os.getenv(
                "BASECAMP_TODOLIST_ID", defaults["basecamp_todolist_id"]
            ),
            basecamp_access_token=os.getenv(
                "BASECAMP_ACCESS_TOKEN", defaults["basecamp_access_token"]
            ),
            basecamp_refresh_token=os.getenv(
                "BASECAMP_REFRESH_TOKEN", defaults["basecamp_refresh_token"]
            ),
            basecamp_client_id=os.getenv("BASECAMP_CLIENT_ID", defaults["basecamp_client_id"]),
            basecamp_client_secret=os.getenv(
                "BASECAMP_CLIENT_SECRET", defaults["basecamp_client_secret"]
            ),
            basecamp_redirect_uri=os.getenv(
                "BASECAMP_REDIRECT_URI", defaults["basecamp_redirect_uri"]
            ),
            basecamp_token_file=os.getenv("BASECAMP_TOKEN_FILE", defaults["basecamp_token_file"]),
            basecamp_add_participants_as_subscribers=_bool_setting(
                "BASECAMP_ADD_PARTICIPANTS_AS_SUBSCRIBERS",
                defaults["basecamp_add_participants_as_subscribers"],
            ),
            db_path=os.getenv("THREADPILOT_DB_PATH", defaults["db_path"]),
            api_key=os.getenv("THREADPILOT_API_KEY", defaults["api_key"]),
            extraction_prompt=load_extraction_prompt(
                os.getenv("EXTRACTION_PROMPT_FILE", defaults["extraction_prompt_file"]) or None
            ),
        )

    def require(self, *names: str) -> None:
        """Summary: Fail fast when required settings are empty.

        Importance: Turns a confusing remote 401 into a clear startup error.
        Alternatives: Let each API call fail on its own.
        """

        missing = [name for name in names if not getattr(self, name)]
        if missing:
            raise ValueError(f"Missing required config: {', '.join(missing)}")


def load_defaults(path: Path) -> dict[str, str]:
    """Summary: Load configuration defaults from JSON.

    Importance: Ensures all variables exist in a single config file.
    Alternatives: Inline defaults in the AppConfig initializer.
    """

    if not path.exists():
        raise FileNotFoundError(f"Defaults file not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def load_dotenv(path: Path) -> None:
    """Summary: Load key-value pairs from a .env file into the environment.

    Importance: Keeps secrets out of code while supporting local workflows.
    Alternatives: Use python-dotenv or OS-specific secret stores.
    """

    if not path.exists():
        return
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


def _int_setting(name: str, default: str, minimum: int) -> int:
    raw = os.getenv(name) or str(default)
    try:
        value = int(raw)
    except ValueError:
        value = int(default)
    return max(minimum, value)


def _bool_setting(name: str, default: str) -> bool:
    return os.getenv(name, str(default)).strip().lower() == "true"
