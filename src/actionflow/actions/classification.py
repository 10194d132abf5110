"""Deterministic action classification and failure-suggestion policy.

Both policies are heuristics over command strings and process output. They
are kept as rule tables so each rule can be tested alone; a match is a hint,
not a diagnosis.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from actionflow.actions.models import ActionKind, ActionPayload

ACTION_CLASSIFIER_VERSION = 1

TERMINAL_WRAPPER_COMMANDS: frozenset[str] = frozenset(
    {
        "terminal.runinterminal",
        "terminal.runshellcommand",
        "actionflow.runinterminal",
        "actionflow.runterminalcommand",
        "actionflow.runshellcommand",
    },
)

_TERMINAL_PREFIXES: tuple[str, ...] = ("terminal.", "bash", "sh ", "./")
_CLIPBOARD_PREFIXES: tuple[str, ...] = ("copy",)
_CLIPBOARD_SUBSTRINGS: tuple[str, ...] = ("clipboard",)
_SHELL_OPERATORS: frozenset[str] = frozenset({"&&", "||", ";", "|", ">", "<"})
_SHELL_OPERATOR_CHARS = frozenset("&|;<>")


@dataclass(frozen=True, slots=True)
class KindClassification:
    """Inferred action kind and the rule that produced it."""

    kind: ActionKind
    matched_rule: str


def _is_single_dotted_token(command: str) -> bool:
    return "." in command and not any(char.isspace() for char in command)


_KIND_RULES: tuple[tuple[str, Callable[[str], bool], ActionKind], ...] = (
    (
        "terminal_prefix",
        lambda command: command.startswith(_TERMINAL_PREFIXES),
        ActionKind.TERMINAL,
    ),
    (
        "terminal_wrapper",
        lambda command: command in TERMINAL_WRAPPER_COMMANDS,
        ActionKind.TERMINAL,
    ),
    (
        "clipboard_keyword",
        lambda command: (
            any(token in command for token in _CLIPBOARD_SUBSTRINGS)
            or command.startswith(_CLIPBOARD_PREFIXES)
        ),
        ActionKind.CLIPBOARD,
    ),
    ("dotted_host_command", _is_single_dotted_token, ActionKind.HOST),
)


def classify_command(command: str) -> KindClassification:
    """Infer the action kind from the command string alone."""

    normalized = command.strip().lower()
    for rule_name, predicate, kind in _KIND_RULES:
        if predicate(normalized):
            return KindClassification(kind=kind, matched_rule=rule_name)
    return KindClassification(kind=ActionKind.TERMINAL, matched_rule="fallback_terminal")


def classify_action(payload: ActionPayload) -> ActionKind:
    """Explicit payload kind wins; otherwise infer from the command."""

    if payload.kind is not None:
        return payload.kind
    return classify_command(payload.command).kind


def build_terminal_command_parts(payload: ActionPayload) -> tuple[str, list[str]]:
    """Resolve the real executable and argv for a terminal payload.

    Wrapper commands such as `terminal.runInTerminal` carry the real command
    line in their args. A bare command string with spaces and no args is
    split on whitespace.
    """

    command = payload.command.strip()
    args = list(payload.string_args())

    if command.lower() in TERMINAL_WRAPPER_COMMANDS and args:
        composite = " ".join(args).strip()
        if composite:
            parts = composite.split()
            return parts[0], parts[1:]

    if not args and any(char.isspace() for char in command):
        parts = command.split()
        return parts[0], parts[1:]

    return command, args


def command_line(command: str, args: list[str] | tuple[str, ...]) -> str:
    return " ".join([command, *args]).strip()


def needs_shell(command: str, args: list[str] | tuple[str, ...]) -> bool:
    """True when any token is or contains a shell operator."""

    for token in (command, *args):
        if not token:
            continue
        if token.strip() in _SHELL_OPERATORS:
            return True
        if any(char in _SHELL_OPERATOR_CHARS for char in token):
            return True
    return False


STANDARD_TERMINAL_SUGGESTION = (
    "Try running the same command inside a standard terminal to inspect environment differences."
)
PERMISSIONS_SUGGESTION = (
    "Check file permissions or add any missing build steps before rerunning."
)
HOST_COMMAND_SUGGESTION = (
    "Ensure the host command exists and that any required arguments are valid."
)


def missing_executable_suggestion(command: str) -> str:
    return f"Confirm that `{command}` is installed and available on PATH."


@dataclass(frozen=True, slots=True)
class FailureContext:
    """Facts about a failed terminal run that suggestion rules inspect."""

    command: str
    exit_code: int | None
    output: str
    spawn_failed: bool


@dataclass(frozen=True, slots=True)
class SuggestionRule:
    """Pattern → suggestion rule."""

    name: str
    applies: Callable[[FailureContext], bool]
    render: Callable[[FailureContext], str]


_SPAWN_MISSING_PATTERNS: tuple[str, ...] = ("enoent", "not found")
_EXIT_MISSING_PATTERNS: tuple[str, ...] = ("command not found",)
_PERMISSION_PATTERNS: tuple[str, ...] = ("permission",)
_MISSING_EXECUTABLE_EXIT_CODES: tuple[int, ...] = (127,)
_PERMISSION_EXIT_CODES: tuple[int, ...] = (126, 1)


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None


SPAWN_FAILURE_RULES: tuple[SuggestionRule, ...] = (
    SuggestionRule(
        name="missing_executable",
        applies=lambda ctx: _first_match(ctx.output, _SPAWN_MISSING_PATTERNS) is not None,
        render=lambda ctx: missing_executable_suggestion(ctx.command),
    ),
    SuggestionRule(
        name="standard_terminal",
        applies=lambda ctx: True,
        render=lambda ctx: STANDARD_TERMINAL_SUGGESTION,
    ),
)

EXIT_FAILURE_RULES: tuple[SuggestionRule, ...] = (
    SuggestionRule(
        name="missing_executable",
        applies=lambda ctx: (
            ctx.exit_code in _MISSING_EXECUTABLE_EXIT_CODES
            or _first_match(ctx.output, _EXIT_MISSING_PATTERNS) is not None
        ),
        render=lambda ctx: missing_executable_suggestion(ctx.command),
    ),
    SuggestionRule(
        name="standard_terminal",
        applies=lambda ctx: True,
        render=lambda ctx: STANDARD_TERMINAL_SUGGESTION,
    ),
    SuggestionRule(
        name="permissions_or_build",
        applies=lambda ctx: (
            ctx.exit_code in _PERMISSION_EXIT_CODES
            and _first_match(ctx.output, _PERMISSION_PATTERNS) is None
        ),
        render=lambda ctx: PERMISSIONS_SUGGESTION,
    ),
)


def suggest_for_failure(
    *,
    command: str,
    exit_code: int | None,
    stdout: str,
    stderr: str,
    spawn_failed: bool,
) -> tuple[str, ...]:
    """Collect deduplicated suggestions for a failed terminal run."""

    context = FailureContext(
        command=command,
        exit_code=exit_code,
        output=f"{stderr} {stdout}".lower(),
        spawn_failed=spawn_failed,
    )
    rules = SPAWN_FAILURE_RULES if spawn_failed else EXIT_FAILURE_RULES
    suggestions: list[str] = []
    for rule in rules:
        if not rule.applies(context):
            continue
        suggestion = rule.render(context)
        if suggestion not in suggestions:
            suggestions.append(suggestion)
    return tuple(suggestions)
