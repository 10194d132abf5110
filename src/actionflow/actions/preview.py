"""Display objects for action previews and execution summaries."""

from __future__ import annotations

import json
from dataclasses import dataclass

from actionflow.actions.classification import (
    build_terminal_command_parts,
    classify_action,
    command_line,
)
from actionflow.actions.models import ActionKind, ActionPayload, ExecutionResult, stringify_arg

ELLIPSIS = "…"

_KIND_LABELS: dict[ActionKind, str] = {
    ActionKind.TERMINAL: "Terminal Action",
    ActionKind.HOST: "Host Action",
    ActionKind.CLIPBOARD: "Clipboard Action",
}


@dataclass(frozen=True, slots=True)
class ActionPreview:
    """What the user sees before approving a pending action."""

    action_id: str
    kind: ActionKind
    type_label: str
    snippet: str
    language: str
    description: str
    raw_json: str
    command: str
    message: str


def truncate_for_review(text: str | None, max_chars: int = 1_000) -> str:
    if not text:
        return ""
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}{ELLIPSIS}"


def describe_kind(kind: ActionKind) -> str:
    return _KIND_LABELS.get(kind, "Action")


def build_action_snippet(payload: ActionPayload, kind: ActionKind | None = None) -> str:
    """Render the payload the way it will run: a command line, clipboard text, or JSON."""

    resolved = kind or classify_action(payload)
    if resolved is ActionKind.TERMINAL:
        command, args = build_terminal_command_parts(payload)
        return command_line(command, args)
    if resolved is ActionKind.CLIPBOARD:
        if payload.text:
            return payload.text
        if payload.args:
            return stringify_arg(payload.args[0])
        return payload.command
    snippet = _snippet_text(payload)
    if snippet:
        return snippet
    return json.dumps({"command": payload.command, "args": list(payload.args or ())}, indent=2)


def build_action_preview(action_id: str, payload: ActionPayload) -> ActionPreview:
    kind = classify_action(payload)
    label = describe_kind(kind)
    description = payload.description or f"Command: {payload.command}"
    return ActionPreview(
        action_id=action_id,
        kind=kind,
        type_label=label,
        snippet=build_action_snippet(payload, kind),
        language=_preview_language(kind, payload),
        description=description,
        raw_json=json.dumps(payload.to_dict(), indent=2),
        command=payload.command,
        message=f"{label} ready: {description}\nApprove it to execute.",
    )


def build_action_summary(
    payload: ActionPayload,
    result: ExecutionResult,
    *,
    max_output_chars: int = 1_000,
) -> str:
    """Plain-text report of one execution, including next-step suggestions."""

    label = describe_kind(result.kind)
    status = "completed successfully" if result.success else "encountered an error"
    details = [f"{label} {status}."]
    if payload.description:
        details.append(payload.description)

    if result.kind is ActionKind.HOST:
        if not result.success and result.stderr:
            details.append(f"Host reported: {result.stderr}")
    else:
        if result.stdout:
            details.append(f"Output:\n{truncate_for_review(result.stdout, max_output_chars)}")
        if result.stderr:
            details.append(f"Errors:\n{truncate_for_review(result.stderr, max_output_chars)}")

    if not result.success:
        details.append(f"Command: {payload.command}")
        if result.exit_code is not None:
            details.append(f"Exit code: {result.exit_code}")

    if result.suggestions:
        bullets = "\n".join(f"- {tip}" for tip in result.suggestions)
        details.append(f"Next steps:\n{bullets}")

    return "\n\n".join(detail for detail in details if detail)


def _preview_language(kind: ActionKind, payload: ActionPayload) -> str:
    if kind is ActionKind.TERMINAL:
        return "bash"
    if kind is ActionKind.CLIPBOARD or _snippet_text(payload):
        return "text"
    return "json"


def _snippet_text(payload: ActionPayload) -> str | None:
    if not payload.args:
        return None
    candidate = payload.args[0]
    if isinstance(candidate, str) and candidate:
        return candidate
    if isinstance(candidate, dict) and isinstance(candidate.get("snippet"), str):
        return candidate["snippet"]
    return None
