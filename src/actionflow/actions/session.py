"""Per-view action session: extract, preview, execute, and remediate.

Public coroutines on `ActionSession` are the boundary between the pipeline
and the UI. They report every failure to the view as a message plus a status
update and never raise.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol

from actionflow.actions.executor import ActionExecutor
from actionflow.actions.extractor import extract_action_payload
from actionflow.actions.models import (
    ActionPayload,
    ExecutionResult,
    TodoListPayload,
)
from actionflow.actions.preview import (
    ActionPreview,
    build_action_preview,
    build_action_summary,
)
from actionflow.actions.registry import PendingActionRegistry
from actionflow.actions.remediation import RemediationPlanner, should_request_remediation
from actionflow.actions.todo import build_todo_list
from actionflow.errors import PendingActionNotFound
from actionflow.llm.client import LlmClient

logger = logging.getLogger(__name__)

ACTION_INSTRUCTIONS = "\n".join(
    [
        "You turn the user's request into exactly one executable action.",
        "Answer with a single fenced ```json block containing:",
        '{"command": string, "args"?: array, "type"?: "terminal" | "host" | "clipboard",',
        ' "text"?: string, "description"?: string}',
        "Use a real executable and explicit arguments for terminal actions.",
    ],
)

NO_ACTION_MESSAGE = "No executable action block was found in the response."
EMPTY_RESPONSE_MESSAGE = "Action mode response was empty."
UNAVAILABLE_ACTION_MESSAGE = "Action is no longer available."
REMEDIATION_INTRO_MESSAGE = "The command failed; requesting suggestions to fix it…"
REMEDIATION_UNAVAILABLE_MESSAGE = "Automatic remediation suggestions are unavailable."
REMEDIATION_READY_MESSAGE = "Remediation steps are ready. Apply them in order."


class ActionView(Protocol):
    """UI sink for one session; display objects travel opaquely in `options`."""

    def append(self, text: str, role: str, options: Mapping[str, object] | None = None) -> None:
        """Add a message to the conversation."""

    def status(self, text: str, *, level: str = "info") -> None:
        """Replace the status line."""


class ActionSession:
    """Action flow bound to one view; the view is the origin of its pending actions."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        view: ActionView,
        registry: PendingActionRegistry,
        executor: ActionExecutor,
        planner: RemediationPlanner | None = None,
        llm: LlmClient | None = None,
        summary_max_chars: int = 1_000,
    ) -> None:
        self.view = view
        self._registry = registry
        self._executor = executor
        self._planner = planner
        self._llm = llm
        self._summary_max_chars = summary_max_chars

    async def handle_action_flow(
        self,
        final_prompt: str,
        original_prompt: str = "",
    ) -> ActionPreview | None:
        """Ask the model for an action and register it for approval."""

        if self._llm is None:
            self.view.append("No language model is configured for action mode.", "error")
            return None
        self.view.status("Requesting action…")
        try:
            response_text = await self._llm.request_text(final_prompt, ACTION_INSTRUCTIONS)
        except Exception as error:
            logger.exception("Action flow failed")
            self.view.append(f"Action mode failed: {error}", "error")
            self.view.status("Action failed", level="error")
            return None
        if not response_text or not response_text.strip():
            self.view.append(EMPTY_RESPONSE_MESSAGE, "system")
            self.view.status("Idle")
            return None
        preview = self.present_model_text(response_text, original_prompt or final_prompt)
        if preview is None:
            self.view.status("Idle")
        return preview

    def present_model_text(self, text: str, original_prompt: str) -> ActionPreview | None:
        """Extract an action from model text, register it, and show its preview."""

        payload = extract_action_payload(text)
        if payload is None:
            self.view.append(NO_ACTION_MESSAGE, "system")
            return None
        action_id = self._registry.register(payload, self.view, original_prompt)
        preview = build_action_preview(action_id, payload)
        self.view.append(preview.message, "assistant", {"action_preview": preview})
        self.view.status("Action ready. Approve it to execute.")
        return preview

    async def run_pending_action(self, action_id: str) -> ExecutionResult | None:
        """Execute an approved action; the registry entry is consumed up front."""

        try:
            entry = self._registry.consume(action_id)
        except PendingActionNotFound:
            self.view.append(UNAVAILABLE_ACTION_MESSAGE, "system")
            return None

        self.view.status("Executing action…")
        try:
            result = await self._executor.execute(entry.payload)
            summary = build_action_summary(
                entry.payload,
                result,
                max_output_chars=self._summary_max_chars,
            )
            role = "assistant" if result.success else "error"
            self.view.append(summary, role, {"action_result": result})
            if should_request_remediation(result):
                await self.offer_remediation(entry.payload, result, entry.original_prompt, summary)
            return result
        except Exception as error:
            logger.exception("Pending action %s failed", action_id)
            self.view.append(f"Action execution error: {error}", "error")
            self.view.status("Action failed", level="error")
            return None
        finally:
            self.view.status("Idle")

    async def offer_remediation(
        self,
        action: ActionPayload,
        result: ExecutionResult,
        original_prompt: str,
        summary: str,
    ) -> TodoListPayload | None:
        """Request a recovery plan and register its runnable steps."""

        if self._planner is None or not should_request_remediation(result):
            return None
        self.view.append(REMEDIATION_INTRO_MESSAGE, "assistant")
        try:
            reply = await self._planner.request_reply(action, result, original_prompt, summary)
        except Exception:
            logger.exception("Remediation planning failed")
            reply = None

        if reply is None or (reply.plan is None and not reply.raw_text.strip()):
            self.view.append(REMEDIATION_UNAVAILABLE_MESSAGE, "assistant")
            return None
        if reply.plan is None:
            self.view.append(
                f"Could not parse an automatic plan. Model answer:\n\n{reply.raw_text}",
                "assistant",
            )
            return None

        todo_list = build_todo_list(reply.plan, self.view, original_prompt, self._registry)
        message = reply.plan.summary or REMEDIATION_READY_MESSAGE
        options = {"todo_list": todo_list} if todo_list is not None else None
        self.view.append(message, "assistant", options)
        return todo_list

    def close(self) -> int:
        """Forget pending actions registered by this view."""

        return self._registry.clear_for_origin(self.view)
