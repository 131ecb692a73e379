"""Tests for configuration loading."""

import json

import pytest

from textflow.config import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    RuntimeConfig,
    get_api_key,
    get_default_model,
    get_textflow_config,
)
from textflow.graph.executor import ExecutorConfig


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "configuration.json"
    monkeypatch.setenv("TEXTFLOW_CONFIG", str(path))

    def write(data):
        path.write_text(json.dumps(data))
        return path

    return write


def test_defaults_without_file():
    assert get_textflow_config() == {}
    assert get_default_model() == DEFAULT_MODEL
    assert RuntimeConfig().max_tokens == DEFAULT_MAX_TOKENS
    assert ExecutorConfig().preview_delay_seconds == 0.0


def test_model_from_file(config_file):
    config_file({"llm": {"provider": "anthropic", "model": "claude-sonnet", "max_tokens": 1024}})

    config = RuntimeConfig()

    assert config.model == "anthropic/claude-sonnet"
    assert config.max_tokens == 1024
    assert ExecutorConfig().default_model == "anthropic/claude-sonnet"


def test_api_key_from_named_env_var(config_file, monkeypatch):
    config_file({"llm": {"api_key_env_var": "MY_KEY"}})
    monkeypatch.setenv("MY_KEY", "secret")

    assert get_api_key() == "secret"


def test_broken_file_is_ignored(config_file):
    path = config_file({})
    path.write_text("{not json")

    assert get_textflow_config() == {}
    assert get_default_model() == DEFAULT_MODEL
