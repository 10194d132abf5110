from __future__ import annotations

import asyncio
import json
import os

import allure
import pytest
from conftest import FakeHost, FakeLlm, RecordingView

from actionflow.actions.executor import ActionExecutor
from actionflow.actions.models import ActionKind, ExecutionResult, TodoListPayload
from actionflow.actions.preview import ActionPreview
from actionflow.actions.registry import PendingActionRegistry
from actionflow.actions.remediation import RemediationPlanner
from actionflow.actions.session import (
    ACTION_INSTRUCTIONS,
    EMPTY_RESPONSE_MESSAGE,
    NO_ACTION_MESSAGE,
    REMEDIATION_UNAVAILABLE_MESSAGE,
    UNAVAILABLE_ACTION_MESSAGE,
    ActionSession,
)
from actionflow.errors import LlmRequestError

pytestmark = [
    allure.epic("Action Pipeline"),
    allure.feature("Sessions"),
]

posix_only = pytest.mark.skipif(os.name == "nt", reason="POSIX executables")

FIX_PLAN = json.dumps(
    {
        "summary": "Use a command that exists.",
        "steps": [
            {"title": "Check PATH", "description": "Print the search path."},
            {"title": "Run echo", "action": {"command": "echo", "args": ["fixed"]}},
        ],
    },
)


def _session(
    view: RecordingView,
    host: FakeHost,
    llm: FakeLlm | None = None,
    *,
    remediation: bool = True,
) -> tuple[ActionSession, PendingActionRegistry]:
    registry = PendingActionRegistry()
    planner = RemediationPlanner(llm) if llm is not None and remediation else None
    session = ActionSession(
        view=view,
        registry=registry,
        executor=ActionExecutor(host),
        planner=planner,
        llm=llm,
    )
    return session, registry


def test_present_model_text_registers_preview(view: RecordingView, fake_host: FakeHost) -> None:
    session, registry = _session(view, fake_host)

    preview = session.present_model_text(
        '```json\n{"command": "copy", "text": "hi"}\n```',
        "copy a greeting",
    )

    assert preview is not None
    assert preview.kind is ActionKind.CLIPBOARD
    entry = registry.get(preview.action_id)
    assert entry is not None
    assert entry.origin is view
    assert entry.original_prompt == "copy a greeting"
    text, role, options = view.messages[-1]
    assert role == "assistant"
    assert text.startswith("Clipboard Action ready")
    assert options == {"action_preview": preview}


def test_text_without_action_is_reported(view: RecordingView, fake_host: FakeHost) -> None:
    session, registry = _session(view, fake_host)
    assert session.present_model_text("Just prose.", "") is None
    assert view.messages == [(NO_ACTION_MESSAGE, "system", None)]
    assert len(registry) == 0


def test_handle_action_flow_requests_model(view: RecordingView, fake_host: FakeHost) -> None:
    llm = FakeLlm('{"command": "ls", "args": ["-la"]}', "   ", LlmRequestError("down"))
    session, registry = _session(view, fake_host, llm)

    preview = asyncio.run(session.handle_action_flow("final prompt", "list files"))
    assert isinstance(preview, ActionPreview)
    assert llm.calls[0] == ("final prompt", ACTION_INSTRUCTIONS)
    assert registry.get(preview.action_id).original_prompt == "list files"

    assert asyncio.run(session.handle_action_flow("again")) is None
    assert EMPTY_RESPONSE_MESSAGE in view.texts()

    assert asyncio.run(session.handle_action_flow("once more")) is None
    assert view.messages[-1][1] == "error"
    assert view.statuses[-1] == ("Action failed", "error")


def test_unknown_action_id_reports_unavailable(view: RecordingView, fake_host: FakeHost) -> None:
    session, _ = _session(view, fake_host)
    assert asyncio.run(session.run_pending_action("action-0-missing")) is None
    assert view.messages == [(UNAVAILABLE_ACTION_MESSAGE, "system", None)]


def test_successful_action_is_consumed(view: RecordingView, fake_host: FakeHost) -> None:
    session, registry = _session(view, fake_host)
    preview = session.present_model_text('{"command": "copy", "text": "hi"}', "")

    result = asyncio.run(session.run_pending_action(preview.action_id))

    assert isinstance(result, ExecutionResult)
    assert result.success is True
    assert fake_host.clipboard == ["hi"]
    assert preview.action_id not in registry
    text, role, options = view.messages[-1]
    assert role == "assistant"
    assert text.startswith("Clipboard Action completed successfully.")
    assert options == {"action_result": result}
    assert view.statuses[-1] == ("Idle", "info")

    asyncio.run(session.run_pending_action(preview.action_id))
    assert view.messages[-1] == (UNAVAILABLE_ACTION_MESSAGE, "system", None)


def test_failed_terminal_action_offers_todo_list(
    view: RecordingView,
    fake_host: FakeHost,
) -> None:
    llm = FakeLlm(FIX_PLAN)
    session, registry = _session(view, fake_host, llm)
    preview = session.present_model_text('{"command": "doesnotexist123"}', "run the tool")

    result = asyncio.run(session.run_pending_action(preview.action_id))

    assert result is not None
    assert result.success is False
    assert "run the tool" in llm.calls[0][0]
    todo_messages = [
        options["todo_list"]
        for _, _, options in view.messages
        if options and "todo_list" in options
    ]
    assert len(todo_messages) == 1
    todo = todo_messages[0]
    assert isinstance(todo, TodoListPayload)
    assert [item.title for item in todo.items] == ["Check PATH", "Run echo"]
    assert todo.items[0].action_id is None
    follow_up = registry.get(todo.items[1].action_id)
    assert follow_up is not None
    assert follow_up.origin is view
    assert follow_up.original_prompt == "run the tool"
    assert "Use a command that exists." in view.texts()


@posix_only
def test_follow_up_action_runs_from_todo_list(
    view: RecordingView,
    fake_host: FakeHost,
) -> None:
    session, registry = _session(view, fake_host, FakeLlm(FIX_PLAN))
    preview = session.present_model_text('{"command": "doesnotexist123"}', "")

    async def _go():
        await session.run_pending_action(preview.action_id)
        todo = next(
            options["todo_list"]
            for _, _, options in view.messages
            if options and "todo_list" in options
        )
        return await session.run_pending_action(todo.items[1].action_id)

    follow_up = asyncio.run(_go())

    assert follow_up is not None
    assert follow_up.success is True
    assert follow_up.stdout == "fixed\n"
    assert len(registry) == 0


def test_remediation_unavailable_when_model_fails(
    view: RecordingView,
    fake_host: FakeHost,
) -> None:
    session, _ = _session(view, fake_host, FakeLlm(LlmRequestError("down")))
    preview = session.present_model_text('{"command": "doesnotexist123"}', "")

    asyncio.run(session.run_pending_action(preview.action_id))

    assert view.messages[-1] == (REMEDIATION_UNAVAILABLE_MESSAGE, "assistant", None)


def test_unparseable_remediation_shows_raw_answer(
    view: RecordingView,
    fake_host: FakeHost,
) -> None:
    session, _ = _session(view, fake_host, FakeLlm("Install it from the vendor site."))
    preview = session.present_model_text('{"command": "doesnotexist123"}', "")

    asyncio.run(session.run_pending_action(preview.action_id))

    assert view.messages[-1][0].endswith("Install it from the vendor site.")


def test_non_terminal_failure_skips_remediation(
    view: RecordingView,
    fake_host: FakeHost,
) -> None:
    llm = FakeLlm()
    session, _ = _session(view, fake_host, llm)
    preview = session.present_model_text('{"command": "editor.fold"}', "")

    result = asyncio.run(session.run_pending_action(preview.action_id))

    assert result is not None
    assert result.kind is ActionKind.HOST
    assert result.success is False
    assert llm.calls == []
    assert view.messages[-1][1] == "error"


def test_close_clears_only_this_view(fake_host: FakeHost) -> None:
    registry = PendingActionRegistry()
    first_view = RecordingView()
    second_view = RecordingView()
    first = ActionSession(view=first_view, registry=registry, executor=ActionExecutor(fake_host))
    second = ActionSession(view=second_view, registry=registry, executor=ActionExecutor(fake_host))
    first.present_model_text('{"command": "ls"}', "")
    kept = second.present_model_text('{"command": "pwd"}', "")

    assert first.close() == 1
    assert len(registry) == 1
    assert kept.action_id in registry
