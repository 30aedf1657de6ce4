"""Summary: Tests for AppConfig resolution.

Importance: Sync limits and cache age must come out of config with the right types.
Alternatives: Discover bad settings at runtime.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from mybrain.config import AppConfig, load_defaults, load_dotenv


REPO_DEFAULTS = Path(__file__).resolve().parents[1] / "config" / "defaults.json"


def test_load_defaults_reads_json(tmp_path: Path) -> None:
    """Summary: Verify the defaults file is read as JSON.

    Importance: Every setting starts from this file.
    Alternatives: Compare against constants in code.
    """

    defaults_path = tmp_path / "defaults.json"
    defaults_path.write_text("{\"db_path\": \"test.db\"}", encoding="utf-8")
    defaults = load_defaults(defaults_path)
    assert defaults["db_path"] == "test.db"


def test_load_defaults_missing_file_raises(tmp_path: Path) -> None:
    """Summary: Verify a missing defaults file raises FileNotFoundError.

    Importance: A broken install fails loudly.
    Alternatives: Silently use empty defaults.
    """

    with pytest.raises(FileNotFoundError):
        load_defaults(tmp_path / "missing.json")


def test_load_dotenv_sets_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify .env lines land in os.environ, skipping comments.

    Importance: Local tokens usually live in .env.
    Alternatives: Export variables by hand before each run.
    """

    env_path = tmp_path / ".env"
    env_path.write_text("# comment\nMYBRAIN_AI_PROVIDER=ollama\n", encoding="utf-8")
    monkeypatch.delenv("MYBRAIN_AI_PROVIDER", raising=False)
    load_dotenv(env_path)
    assert os.getenv("MYBRAIN_AI_PROVIDER") == "ollama"
    monkeypatch.delenv("MYBRAIN_AI_PROVIDER", raising=False)


def test_app_config_uses_defaults_and_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify AppConfig honors defaults and environment overrides.

    Importance: Confirms the shipped defaults cover every field and env vars win.
    Alternatives: Test each field through its consumer.
    """

    (tmp_path / "config").mkdir()
    defaults = json.loads(REPO_DEFAULTS.read_text(encoding="utf-8"))
    (tmp_path / "config" / "defaults.json").write_text(json.dumps(defaults), encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    for name in ("MYBRAIN_DB_PATH", "MYBRAIN_AI_PROVIDER", "GMAIL_ACCESS_TOKEN", "NOTION_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MYBRAIN_CACHE_MAX_AGE_SECONDS", "60")
    monkeypatch.setenv("MYBRAIN_CHAT_CONTAINER_CAP", "5")

    config = AppConfig.from_env()
    assert config.db_path == "mybrain.db"
    assert config.ai_provider == "mock"
    assert config.cache_max_age_seconds == 60.0
    assert config.chat_container_cap == 5
    assert config.sync_window_days == 30
    assert config.incremental_fetch_limit == 100
    assert config.full_fetch_limit == 500
    assert config.gmail_access_token is None
    assert config.notion_token is None
    assert config.api_port == 8000
