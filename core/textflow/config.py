"""Shared TextFlow configuration utilities.

Centralises reading of ~/.textflow/configuration.json so that the engine,
the LLM adapters and any embedding application share one implementation.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_MODEL = "gemini/gemini-2.5-flash"
DEFAULT_MAX_TOKENS = 8192
DEFAULT_TEMPERATURE = 0.7

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

TEXTFLOW_CONFIG_FILE = Path.home() / ".textflow" / "configuration.json"


def get_config_path() -> Path:
    """Return the configuration file path, honouring TEXTFLOW_CONFIG."""
    override = os.environ.get("TEXTFLOW_CONFIG")
    if override:
        return Path(override)
    return TEXTFLOW_CONFIG_FILE


def get_textflow_config() -> dict[str, Any]:
    """Load textflow configuration from the configuration file."""
    path = get_config_path()
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8-sig") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def get_default_model() -> str:
    """Return the preferred model string (e.g. 'gemini/gemini-2.5-flash')."""
    llm = get_textflow_config().get("llm", {})
    if llm.get("provider") and llm.get("model"):
        return f"{llm['provider']}/{llm['model']}"
    return DEFAULT_MODEL


def get_max_tokens() -> int:
    """Return the configured max_tokens, falling back to DEFAULT_MAX_TOKENS."""
    return get_textflow_config().get("llm", {}).get("max_tokens", DEFAULT_MAX_TOKENS)


def get_api_key() -> str | None:
    """Return the API key from the environment variable specified in configuration."""
    llm = get_textflow_config().get("llm", {})
    api_key_env_var = llm.get("api_key_env_var")
    if api_key_env_var:
        return os.environ.get(api_key_env_var)
    return None


def get_request_timeout() -> float | None:
    """Return the per-request timeout in seconds for generation calls, if any."""
    return get_textflow_config().get("llm", {}).get("timeout")


# ---------------------------------------------------------------------------
# RuntimeConfig – settings for the generation adapter
# ---------------------------------------------------------------------------


@dataclass
class RuntimeConfig:
    """Generation settings loaded from the configuration file."""

    model: str = field(default_factory=get_default_model)
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = field(default_factory=get_max_tokens)
    api_key: str | None = field(default_factory=get_api_key)
    api_base: str | None = None
    timeout: float | None = field(default_factory=get_request_timeout)
