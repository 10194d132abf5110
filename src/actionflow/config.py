"""Runtime configuration for the LLM client and action execution."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

DEFAULT_LLM_ENDPOINT = "http://localhost:11434/api/chat"
DEFAULT_LLM_MODEL = "llama3"
DEFAULT_API_KEY_HEADER = "Authorization"


@dataclass(slots=True)
class LlmSettings:
    """Model endpoint, credentials, and request logging settings."""

    endpoint: str = DEFAULT_LLM_ENDPOINT
    model: str = DEFAULT_LLM_MODEL
    api_key: str = ""
    api_key_header: str = DEFAULT_API_KEY_HEADER
    extra_headers: dict[str, str] = field(default_factory=dict)
    timeout_seconds: float = 120.0
    log_unmasked_headers: bool = False

    def build_headers(self) -> dict[str, str]:
        """Compose request headers from extra headers and the API key."""

        headers = {"Content-Type": "application/json"}
        headers.update(self.extra_headers)
        api_key = self.api_key.strip()
        if api_key:
            header_name = self.api_key_header.strip() or DEFAULT_API_KEY_HEADER
            if header_name.lower() == "authorization" and " " not in api_key:
                api_key = f"Bearer {api_key}"
            headers[header_name] = api_key
        return headers


@dataclass(slots=True)
class ExecutionSettings:
    """Action execution settings."""

    workspace_roots: tuple[Path, ...] = ()
    review_output_max_chars: int = 1_500
    summary_output_max_chars: int = 1_000


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    llm: LlmSettings = field(default_factory=LlmSettings)
    execution: ExecutionSettings = field(default_factory=ExecutionSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults for a local model server."""

        return cls(
            llm=LlmSettings(
                endpoint=os.getenv("ACTIONFLOW_LLM_ENDPOINT", DEFAULT_LLM_ENDPOINT).strip(),
                model=os.getenv("ACTIONFLOW_LLM_MODEL", DEFAULT_LLM_MODEL).strip(),
                api_key=os.getenv("ACTIONFLOW_LLM_API_KEY", ""),
                api_key_header=os.getenv("ACTIONFLOW_LLM_API_KEY_HEADER", DEFAULT_API_KEY_HEADER),
                extra_headers=_collect_extra_headers(),
                timeout_seconds=_env_float("ACTIONFLOW_LLM_TIMEOUT_SECONDS", default=120.0),
                log_unmasked_headers=_env_bool("ACTIONFLOW_LOG_UNMASKED_HEADERS", default=False),
            ),
            execution=ExecutionSettings(
                workspace_roots=_collect_workspace_roots(),
                review_output_max_chars=_env_int(
                    "ACTIONFLOW_REVIEW_OUTPUT_MAX_CHARS",
                    default=1_500,
                ),
                summary_output_max_chars=_env_int(
                    "ACTIONFLOW_SUMMARY_OUTPUT_MAX_CHARS",
                    default=1_000,
                ),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if values are out of range."""

        parsed = urlparse(self.llm.endpoint)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                "Invalid ACTIONFLOW_LLM_ENDPOINT: "
                f"{self.llm.endpoint!r}. Expected an absolute http:// or https:// URL.",
            )
        if not self.llm.model:
            raise ValueError("ACTIONFLOW_LLM_MODEL must not be empty.")
        if self.llm.timeout_seconds <= 0:
            raise ValueError("ACTIONFLOW_LLM_TIMEOUT_SECONDS must be > 0.")
        if self.execution.review_output_max_chars <= 0:
            raise ValueError("ACTIONFLOW_REVIEW_OUTPUT_MAX_CHARS must be > 0.")
        if self.execution.summary_output_max_chars <= 0:
            raise ValueError("ACTIONFLOW_SUMMARY_OUTPUT_MAX_CHARS must be > 0.")


def _collect_extra_headers() -> dict[str, str]:
    raw = os.getenv("ACTIONFLOW_LLM_EXTRA_HEADERS", "").strip()
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as error:
        raise ValueError(
            f"Invalid ACTIONFLOW_LLM_EXTRA_HEADERS: {raw!r}. Expected a JSON object.",
        ) from error
    if not isinstance(parsed, dict):
        raise ValueError(
            f"Invalid ACTIONFLOW_LLM_EXTRA_HEADERS: {raw!r}. Expected a JSON object.",
        )
    return {str(key): str(value) for key, value in parsed.items()}


def _collect_workspace_roots() -> tuple[Path, ...]:
    raw = os.getenv("ACTIONFLOW_WORKSPACE_ROOTS", "").strip()
    if not raw:
        return ()
    roots: list[Path] = []
    seen: set[str] = set()
    for part in raw.split(os.pathsep):
        normalized = part.strip()
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        roots.append(Path(normalized).expanduser())
    return tuple(roots)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as error:
        raise ValueError(f"Invalid number value for {name}: {value!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
