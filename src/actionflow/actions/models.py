"""Domain models for action payloads, execution results, and remediation plans."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from actionflow.errors import InvalidActionPayload


class ActionKind(str, Enum):
    """Side-effect channel used to execute an action."""

    CLIPBOARD = "clipboard"
    HOST = "host"
    TERMINAL = "terminal"


_KIND_ALIASES: dict[str, ActionKind] = {
    "clipboard": ActionKind.CLIPBOARD,
    "host": ActionKind.HOST,
    "host_command": ActionKind.HOST,
    "hostcommand": ActionKind.HOST,
    "vscode": ActionKind.HOST,
    "terminal": ActionKind.TERMINAL,
}

# `{"command": "host", "args": ["<name>", ...]}` names the host command in args[0].
_HOST_ENVELOPE_COMMANDS: frozenset[str] = frozenset({"host", "vscode"})


def parse_action_kind(value: object) -> ActionKind | None:
    """Map a wire `type`/`kind` value to `ActionKind`, or None when unrecognized."""

    if isinstance(value, ActionKind):
        return value
    if not isinstance(value, str):
        return None
    return _KIND_ALIASES.get(value.strip().lower())


def coerce_args(value: object) -> tuple[Any, ...] | None:
    """Wrap a non-list args value in a single-element tuple."""

    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return (value,)


def stringify_arg(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value)
    return str(value)


@dataclass(frozen=True, slots=True)
class ActionPayload:
    """Validated "do this" instruction parsed out of model text."""

    command: str
    args: tuple[Any, ...] | None = None
    kind: ActionKind | None = None
    text: str | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.command, str) or not self.command.strip():
            raise InvalidActionPayload("Action command must be a non-empty string.")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ActionPayload:
        """Validate decoded JSON and build a payload.

        `type` and `kind` are both accepted for the channel; unknown values
        are dropped so that command-based inference applies. A `host` or
        `vscode` command with args delegates to the host command named in
        the first arg.
        """

        if not isinstance(data, Mapping):
            raise InvalidActionPayload("Action payload must be a JSON object.")
        command = data.get("command")
        if not isinstance(command, str) or not command.strip():
            raise InvalidActionPayload("Action payload requires a non-empty string command.")
        raw_kind = data.get("kind", data.get("type"))
        kind = parse_action_kind(raw_kind)
        command = command.strip()
        args = coerce_args(data.get("args"))
        if command.lower() in _HOST_ENVELOPE_COMMANDS and args and kind in (None, ActionKind.HOST):
            delegated = stringify_arg(args[0]).strip()
            if delegated:
                command, args, kind = delegated, args[1:], ActionKind.HOST
        text = data.get("text")
        description = data.get("description")
        return cls(
            command=command,
            args=args,
            kind=kind,
            text=text if isinstance(text, str) else None,
            description=description if isinstance(description, str) else None,
        )

    def string_args(self) -> tuple[str, ...]:
        if not self.args:
            return ()
        return tuple(stringify_arg(arg) for arg in self.args)

    def to_dict(self) -> dict[str, object]:
        """Serialize for previews and logs, omitting unset fields."""

        payload: dict[str, object] = {"command": self.command}
        if self.args is not None:
            payload["args"] = list(self.args)
        if self.kind is not None:
            payload["type"] = self.kind.value
        if self.text is not None:
            payload["text"] = self.text
        if self.description is not None:
            payload["description"] = self.description
        return payload


@dataclass(frozen=True, slots=True)
class PendingActionEntry:
    """Registered action awaiting human confirmation."""

    id: str
    payload: ActionPayload
    origin: object
    original_prompt: str


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Outcome of executing one action through one strategy."""

    success: bool
    kind: ActionKind
    command: str
    args: tuple[str, ...] = ()
    stdout: str | None = None
    stderr: str | None = None
    exit_code: int | None = None
    cwd: str | None = None
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RemediationStep:
    """One recovery step proposed by the model."""

    title: str
    description: str | None = None
    action: Mapping[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class RemediationPlan:
    """Ordered recovery plan for a failed terminal action."""

    summary: str
    steps: tuple[RemediationStep, ...]
    title: str | None = None

    def __post_init__(self) -> None:
        if not self.steps:
            raise ValueError("Remediation plan requires at least one step.")


@dataclass(frozen=True, slots=True)
class TodoItem:
    """Display item for one remediation step."""

    id: str
    title: str
    detail: str | None = None
    action_id: str | None = None
    snippet: str | None = None


@dataclass(frozen=True, slots=True)
class TodoListPayload:
    """Remediation todo list offered back to the user."""

    title: str
    description: str
    items: tuple[TodoItem, ...]
