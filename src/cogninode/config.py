"""
Configuration for CogniNode
Reads API keys and server settings from the environment (and a local .env).
Values are looked up at call time so a changed environment is picked up
without re-importing.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Constants
APP_NAME = "CogniNode"
DEFAULT_LLM_MODEL = "gpt-4o-mini"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 5000

REQUIRED_KEYS = ["OPENAI_API_KEY"]
OPTIONAL_KEYS = ["YOUTUBE_API_KEY", "SERPER_API_KEY"]


def _env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def openai_api_key() -> str | None:
    return _env("OPENAI_API_KEY")


def llm_model() -> str:
    return _env("COGNINODE_LLM_MODEL") or DEFAULT_LLM_MODEL


def youtube_api_key() -> str | None:
    return _env("YOUTUBE_API_KEY")


def serper_api_key() -> str | None:
    return _env("SERPER_API_KEY")


def state_file() -> Path | None:
    """Where the persisted {progress, currentMap} record lives, if anywhere."""
    value = _env("COGNINODE_STATE_FILE")
    return Path(value).expanduser() if value else None


def server_address() -> tuple[str, int]:
    host = _env("COGNINODE_HOST") or DEFAULT_HOST
    try:
        port = int(_env("COGNINODE_PORT") or DEFAULT_PORT)
    except ValueError:
        port = DEFAULT_PORT
    return host, port


def validate_config() -> None:
    """Raise if a required key is missing from the environment."""
    missing = [key for key in REQUIRED_KEYS if not _env(key)]
    if missing:
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}\n"
            "Please check your .env file and ensure all required keys are set."
        )


def optional_config() -> dict[str, bool]:
    """Which optional search keys are configured (never raises)."""
    return {key: bool(_env(key)) for key in OPTIONAL_KEYS}
