"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from actionflow.actions.host import HostResult
from actionflow.actions.terminal import TerminalSession


@dataclass(slots=True)
class FakeHost:
    """In-memory host; terminal actions still spawn real processes."""

    roots: list[Path] = field(default_factory=list)
    commands: dict[str, HostResult] = field(default_factory=dict)
    clipboard_ok: bool = True
    clipboard: list[str] = field(default_factory=list)
    command_calls: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)
    spawned: list[tuple[str, list[str], str]] = field(default_factory=list)

    async def execute_named_command(self, name: str, *args: Any) -> HostResult:
        self.command_calls.append((name, args))
        return self.commands.get(name, HostResult(ok=False, message=f"command '{name}' not found"))

    async def write_clipboard(self, text: str) -> HostResult:
        if not self.clipboard_ok:
            return HostResult(ok=False, message="clipboard unavailable")
        self.clipboard.append(text)
        return HostResult(ok=True, message="Copied text to clipboard.")

    async def spawn_in_terminal(
        self,
        command: str,
        args: Sequence[str],
        *,
        cwd: str,
        env: Mapping[str, str],
    ) -> TerminalSession:
        self.spawned.append((command, list(args), cwd))
        session = TerminalSession(command, args, cwd=cwd, env=env, stream_output=False)
        await session.start()
        return session

    def list_workspace_roots(self) -> list[Path]:
        return list(self.roots)


class FakeLlm:
    """Returns canned answers in order and records every prompt."""

    def __init__(self, *answers: str | Exception) -> None:
        self._answers = list(answers)
        self.calls: list[tuple[str, str | None]] = []

    async def request_text(self, prompt: str, system_instructions: str | None = None) -> str:
        self.calls.append((prompt, system_instructions))
        if not self._answers:
            raise AssertionError("FakeLlm received an unexpected request")
        answer = self._answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


@dataclass(slots=True)
class RecordingView:
    messages: list[tuple[str, str, Mapping[str, object] | None]] = field(default_factory=list)
    statuses: list[tuple[str, str]] = field(default_factory=list)

    def append(self, text: str, role: str, options: Mapping[str, object] | None = None) -> None:
        self.messages.append((text, role, options))

    def status(self, text: str, *, level: str = "info") -> None:
        self.statuses.append((text, level))

    def texts(self) -> list[str]:
        return [text for text, _, _ in self.messages]


@pytest.fixture()
def fake_host(tmp_path: Path) -> FakeHost:
    return FakeHost(roots=[tmp_path])


@pytest.fixture()
def view() -> RecordingView:
    return RecordingView()


@pytest.fixture(autouse=True)
def _clean_actionflow_env(monkeypatch) -> None:
    for name in (
        "ACTIONFLOW_LLM_ENDPOINT",
        "ACTIONFLOW_LLM_MODEL",
        "ACTIONFLOW_LLM_API_KEY",
        "ACTIONFLOW_LLM_API_KEY_HEADER",
        "ACTIONFLOW_LLM_EXTRA_HEADERS",
        "ACTIONFLOW_LLM_TIMEOUT_SECONDS",
        "ACTIONFLOW_LOG_UNMASKED_HEADERS",
        "ACTIONFLOW_WORKSPACE_ROOTS",
        "ACTIONFLOW_REVIEW_OUTPUT_MAX_CHARS",
        "ACTIONFLOW_SUMMARY_OUTPUT_MAX_CHARS",
    ):
        monkeypatch.delenv(name, raising=False)
