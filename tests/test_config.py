from __future__ import annotations

import os
from pathlib import Path

import allure
import pytest

from actionflow.config import LlmSettings, Settings

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Environment Settings"),
]


def test_defaults_target_local_model_server() -> None:
    settings = Settings.from_env()
    settings.validate()

    assert settings.llm.endpoint == "http://localhost:11434/api/chat"
    assert settings.llm.model == "llama3"
    assert settings.llm.timeout_seconds == 120.0
    assert settings.execution.workspace_roots == ()
    assert settings.execution.review_output_max_chars == 1_500
    assert settings.execution.summary_output_max_chars == 1_000


def test_env_overrides(monkeypatch, tmp_path: Path) -> None:
    other = tmp_path / "other"
    monkeypatch.setenv("ACTIONFLOW_LLM_ENDPOINT", "https://api.example.com/v1/chat/completions")
    monkeypatch.setenv("ACTIONFLOW_LLM_MODEL", "gpt-test")
    monkeypatch.setenv("ACTIONFLOW_LLM_API_KEY", "secret")
    monkeypatch.setenv("ACTIONFLOW_LLM_EXTRA_HEADERS", '{"X-Org": "acme"}')
    monkeypatch.setenv("ACTIONFLOW_LLM_TIMEOUT_SECONDS", "5.5")
    monkeypatch.setenv("ACTIONFLOW_LOG_UNMASKED_HEADERS", "yes")
    monkeypatch.setenv(
        "ACTIONFLOW_WORKSPACE_ROOTS",
        os.pathsep.join([str(tmp_path), str(other), str(tmp_path)]),
    )
    monkeypatch.setenv("ACTIONFLOW_REVIEW_OUTPUT_MAX_CHARS", "200")

    settings = Settings.from_env()
    settings.validate()

    assert settings.llm.model == "gpt-test"
    assert settings.llm.timeout_seconds == 5.5
    assert settings.llm.log_unmasked_headers is True
    assert settings.execution.workspace_roots == (tmp_path, other)
    assert settings.execution.review_output_max_chars == 200
    assert settings.llm.build_headers() == {
        "Content-Type": "application/json",
        "X-Org": "acme",
        "Authorization": "Bearer secret",
    }


def test_custom_api_key_header_is_sent_verbatim() -> None:
    settings = LlmSettings(api_key="k-123", api_key_header="x-api-key")
    assert settings.build_headers()["x-api-key"] == "k-123"
    prefixed = LlmSettings(api_key="Token abc")
    assert prefixed.build_headers()["Authorization"] == "Token abc"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("ACTIONFLOW_LLM_EXTRA_HEADERS", "not json"),
        ("ACTIONFLOW_LLM_EXTRA_HEADERS", "[1, 2]"),
        ("ACTIONFLOW_LLM_TIMEOUT_SECONDS", "soon"),
        ("ACTIONFLOW_LOG_UNMASKED_HEADERS", "maybe"),
        ("ACTIONFLOW_SUMMARY_OUTPUT_MAX_CHARS", "many"),
    ],
)
def test_from_env_rejects_malformed_values(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=name):
        Settings.from_env()


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("ACTIONFLOW_LLM_ENDPOINT", "localhost:11434"),
        ("ACTIONFLOW_LLM_TIMEOUT_SECONDS", "0"),
        ("ACTIONFLOW_REVIEW_OUTPUT_MAX_CHARS", "-1"),
    ],
)
def test_validate_rejects_out_of_range_values(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)
    settings = Settings.from_env()
    with pytest.raises(ValueError, match=name):
        settings.validate()
