"""Controllers for action CLI commands."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from actionflow.actions.classification import classify_command
from actionflow.actions.executor import ActionExecutor
from actionflow.actions.extractor import extract_action_payload
from actionflow.actions.host import LocalHostPlatform
from actionflow.actions.models import TodoListPayload
from actionflow.actions.preview import ActionPreview
from actionflow.actions.registry import PendingActionRegistry
from actionflow.actions.remediation import RemediationPlanner
from actionflow.actions.session import NO_ACTION_MESSAGE, ActionSession
from actionflow.config import Settings
from actionflow.llm.client import HttpLlmClient

logger = logging.getLogger(__name__)

MAX_REMEDIATION_ROUNDS = 2


@dataclass(slots=True)
class ActionExtractCommand:
    """CLI input for payload extraction."""

    text: str


@dataclass(slots=True)
class ActionClassifyCommand:
    """CLI input for kind classification."""

    command: str


@dataclass(slots=True)
class ActionRunCommand:
    """CLI input for the interactive run loop."""

    text: str | None
    prompt: str | None
    assume_yes: bool
    remediation: bool
    echo: Callable[[str], None]
    write: Callable[[str], None]
    confirm: Callable[[str], bool]


@dataclass(slots=True)
class ConsoleView:
    """`ActionView` that prints messages and remembers offered todo lists."""

    echo: Callable[[str], None]
    todo_lists: list[TodoListPayload] = field(default_factory=list)
    last_status: str = ""

    def append(self, text: str, role: str, options: Mapping[str, object] | None = None) -> None:
        self.echo(f"[{role}] {text}" if role in {"error", "system"} else text)
        if not options:
            return
        preview = options.get("action_preview")
        if isinstance(preview, ActionPreview):
            self.echo(f"  {preview.snippet}")
        todo_list = options.get("todo_list")
        if isinstance(todo_list, TodoListPayload):
            self.todo_lists.append(todo_list)
            self.echo(todo_list.title)
            for index, item in enumerate(todo_list.items, start=1):
                self.echo(f"  {index}. {item.title}")
                if item.detail:
                    self.echo(f"     {item.detail}")
                if item.snippet:
                    self.echo(f"     $ {item.snippet}")

    def status(self, text: str, *, level: str = "info") -> None:
        self.last_status = text
        log = logger.warning if level == "error" else logger.debug
        log("Status: %s", text)


class ActionCliController:
    """Coordinates extraction, classification, and execution CLI operations."""

    def extract(self, command: ActionExtractCommand) -> list[str]:
        payload = extract_action_payload(command.text)
        if payload is None:
            return [NO_ACTION_MESSAGE]
        return json.dumps(payload.to_dict(), indent=2).splitlines()

    def classify(self, command: ActionClassifyCommand) -> list[str]:
        classification = classify_command(command.command)
        return [f"kind={classification.kind.value} rule={classification.matched_rule}"]

    def run(self, command: ActionRunCommand) -> list[str]:
        settings = Settings.from_env()
        settings.validate()
        return asyncio.run(self._run(command, settings))

    async def _run(self, command: ActionRunCommand, settings: Settings) -> list[str]:
        view = ConsoleView(echo=command.echo)
        registry = PendingActionRegistry()
        host = LocalHostPlatform(
            workspace_roots=settings.execution.workspace_roots,
            display=command.write,
        )
        executed = 0
        failed = 0
        async with HttpLlmClient(settings.llm) as llm:
            planner = (
                RemediationPlanner(llm, output_max_chars=settings.execution.review_output_max_chars)
                if command.remediation
                else None
            )
            session = ActionSession(
                view=view,
                registry=registry,
                executor=ActionExecutor(host),
                planner=planner,
                llm=llm,
                summary_max_chars=settings.execution.summary_output_max_chars,
            )
            try:
                if command.prompt:
                    preview = await session.handle_action_flow(command.prompt, command.prompt)
                else:
                    preview = session.present_model_text(command.text or "", "")
                queue: list[tuple[str, int]] = [(preview.action_id, 0)] if preview else []
                while queue:
                    action_id, depth = queue.pop(0)
                    entry = registry.get(action_id)
                    if entry is None:
                        continue
                    if not command.assume_yes and not command.confirm(
                        f"Run {entry.payload.command!r}?",
                    ):
                        continue
                    offered = len(view.todo_lists)
                    result = await session.run_pending_action(action_id)
                    await host.drain_display()
                    executed += 1
                    if result is None or not result.success:
                        failed += 1
                    if depth >= MAX_REMEDIATION_ROUNDS:
                        continue
                    for todo_list in view.todo_lists[offered:]:
                        queue.extend(
                            (item.action_id, depth + 1)
                            for item in todo_list.items
                            if item.action_id
                        )
            finally:
                session.close()

        return [f"Run summary: executed={executed} failed={failed}"]
