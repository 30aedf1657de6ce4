"""Summary: Application configuration for MyBrain.

Importance: Sync windows, cache age, and source credentials all come from one place.
Alternatives: Read os.environ ad hoc wherever a value is needed.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from dataclasses import dataclass


@dataclass(frozen=True)
class AppConfig:
    """Summary: Holds configuration values for sources, AI providers, cache, and storage.

    Importance: Passed whole into build_context so every component sees the same values.
    Alternatives: Give each component its own settings object.
    """

    db_path: str
    ai_provider: str
    openai_api_key: str | None
    openai_model: str
    ollama_url: str
    ollama_model: str
    anthropic_api_key: str | None
    anthropic_model: str
    api_host: str
    api_port: int
    api_key: str
    cache_max_age_seconds: float
    sync_window_days: int
    incremental_fetch_limit: int
    full_fetch_limit: int
    chat_container_cap: int
    chat_fixture_path: str | None
    mail_fixture_path: str | None
    workspace_fixture_path: str | None
    gmail_access_token: str | None
    gmail_api_base_url: str
    notion_token: str | None
    notion_api_base_url: str
    notion_version: str
    log_level: str

    @staticmethod
    def from_env() -> "AppConfig":
        """Summary: Resolve every setting from defaults, then .env, then the process environment.

        Importance: Empty strings in defaults mean "unset" for optional tokens and paths.
        Alternatives: Require every variable in the environment.
        """

        defaults = load_defaults(Path("config") / "defaults.json")
        load_dotenv(Path(".env"))
        return AppConfig(
            db_path=os.getenv("MYBRAIN_DB_PATH", defaults["db_path"]),
            ai_provider=os.getenv("MYBRAIN_AI_PROVIDER", defaults["ai_provider"]),
            openai_api_key=os.getenv("OPENAI_API_KEY") or defaults["openai_api_key"] or None,
            openai_model=os.getenv("OPENAI_MODEL", defaults["openai_model"]),
            ollama_url=os.getenv("OLLAMA_URL", defaults["ollama_url"]),
            ollama_model=os.getenv("OLLAMA_MODEL", defaults["ollama_model"]),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or defaults["anthropic_api_key"] or None,
            anthropic_model=os.getenv("ANTHROPIC_MODEL", defaults["anthropic_model"]),
            api_host=os.getenv("MYBRAIN_API_HOST", defaults["api_host"]),
            api_port=int(os.getenv("MYBRAIN_API_PORT", defaults["api_port"])),
            api_key=os.getenv("MYBRAIN_API_KEY", defaults["api_key"]),
            cache_max_age_seconds=float(
                os.getenv("MYBRAIN_CACHE_MAX_AGE_SECONDS", defaults["cache_max_age_seconds"])
            ),
            sync_window_days=int(os.getenv("MYBRAIN_SYNC_WINDOW_DAYS", defaults["sync_window_days"])),
            incremental_fetch_limit=int(
                os.getenv("MYBRAIN_INCREMENTAL_FETCH_LIMIT", defaults["incremental_fetch_limit"])
            ),
            full_fetch_limit=int(os.getenv("MYBRAIN_FULL_FETCH_LIMIT", defaults["full_fetch_limit"])),
            chat_container_cap=int(
                os.getenv("MYBRAIN_CHAT_CONTAINER_CAP", defaults["chat_container_cap"])
            ),
            chat_fixture_path=os.getenv("MYBRAIN_CHAT_FIXTURE") or defaults["chat_fixture_path"] or None,
            mail_fixture_path=os.getenv("MYBRAIN_MAIL_FIXTURE") or defaults["mail_fixture_path"] or None,
            workspace_fixture_path=os.getenv("MYBRAIN_WORKSPACE_FIXTURE")
            or defaults["workspace_fixture_path"]
            or None,
            gmail_access_token=os.getenv("GMAIL_ACCESS_TOKEN") or defaults["gmail_access_token"] or None,
            gmail_api_base_url=os.getenv("GMAIL_API_BASE_URL", defaults["gmail_api_base_url"]),
            notion_token=os.getenv("NOTION_TOKEN") or defaults["notion_token"] or None,
            notion_api_base_url=os.getenv("NOTION_API_BASE_URL", defaults["notion_api_base_url"]),
            notion_version=os.getenv("NOTION_VERSION", defaults["notion_version"]),
            log_level=os.getenv("MYBRAIN_LOG_LEVEL", defaults["log_level"]),
        )


def load_defaults(path: Path) -> dict[str, str]:
    """Summary: Read config/defaults.json.

    Importance: A missing defaults file is a deployment error, so it raises.
    Alternatives: Fall back to hardcoded values.
    """

    if not path.exists():
        raise FileNotFoundError(f"Defaults file not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def load_dotenv(path: Path) -> None:
    """Summary: Copy KEY=VALUE lines from a .env file into os.environ.

    Importance: Values already set in the environment are left alone.
    Alternatives: Source the file from a shell wrapper.
    """

    if not path.exists():
        return
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())
