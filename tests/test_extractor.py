from __future__ import annotations

import allure

from actionflow.actions.extractor import balanced_object_at, extract_action_payload
from actionflow.actions.models import ActionKind

pytestmark = [
    allure.epic("Action Pipeline"),
    allure.feature("Payload Extraction"),
]


def test_extracts_payload_from_fenced_json_block() -> None:
    text = """
Here is what I would run:
```json
{"command": "ls", "args": ["-la"], "type": "terminal", "description": "List files"}
```
Let me know.
""".strip()
    payload = extract_action_payload(text)
    assert payload is not None
    assert payload.command == "ls"
    assert payload.args == ("-la",)
    assert payload.kind is ActionKind.TERMINAL
    assert payload.description == "List files"


def test_skips_fenced_blocks_without_command() -> None:
    text = (
        "```json\n{\"note\": \"not an action\"}\n```\n"
        "```\n{\"command\": \"npm\", \"args\": [\"test\"]}\n```"
    )
    payload = extract_action_payload(text)
    assert payload is not None
    assert payload.command == "npm"


def test_recovers_unfenced_payload_by_brace_scan() -> None:
    text = 'Sure. {"command": "go", "args": ["test", "./..."]} should do it.'
    payload = extract_action_payload(text)
    assert payload is not None
    assert payload.command == "go"
    assert payload.args == ("test", "./...")


def test_returns_none_without_action() -> None:
    assert extract_action_payload("") is None
    assert extract_action_payload(None) is None
    assert extract_action_payload("No JSON here at all.") is None
    assert extract_action_payload('{"command": ""}') is None
    assert extract_action_payload('{"command": "ls"') is None


def test_extraction_is_idempotent() -> None:
    text = '```json\n{"command": "copy", "text": "hello"}\n```'
    assert extract_action_payload(text) == extract_action_payload(text)


def test_unknown_kind_is_dropped() -> None:
    payload = extract_action_payload('{"command": "ls", "type": "teleport"}')
    assert payload is not None
    assert payload.kind is None


def test_scalar_args_are_wrapped() -> None:
    payload = extract_action_payload('{"command": "echo", "args": "hi"}')
    assert payload is not None
    assert payload.args == ("hi",)


def test_balanced_object_returns_tail_when_unclosed() -> None:
    assert balanced_object_at('x {"a": {"b": 1}} y', 2) == '{"a": {"b": 1}}'
    assert balanced_object_at('{"a": 1', 0) == '{"a": 1'


def test_deeply_nested_json_is_not_an_action() -> None:
    nested = "[" * 100_000 + "]" * 100_000
    assert extract_action_payload(f"```json\n{nested}\n```") is None
    assert extract_action_payload('{"command": ' + nested + "}") is None


def test_host_envelope_delegates_to_named_command() -> None:
    payload = extract_action_payload('{"command": "vscode", "args": ["editor.fold", 2]}')
    assert payload is not None
    assert payload.command == "editor.fold"
    assert payload.args == (2,)
    assert payload.kind is ActionKind.HOST

    bare = extract_action_payload('{"command": "host", "args": ["saveAll"]}')
    assert bare is not None
    assert bare.command == "saveAll"
    assert bare.args == ()
    assert bare.kind is ActionKind.HOST


def test_host_envelope_needs_a_name_and_host_kind() -> None:
    no_args = extract_action_payload('{"command": "vscode"}')
    assert no_args is not None
    assert no_args.command == "vscode"
    assert no_args.kind is None

    terminal = extract_action_payload(
        '{"command": "host", "args": ["example.com"], "type": "terminal"}',
    )
    assert terminal is not None
    assert terminal.command == "host"
    assert terminal.args == ("example.com",)
