"""Model-proposed recovery plans for failed terminal actions."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass

import httpx

from actionflow.actions.classification import build_terminal_command_parts, command_line
from actionflow.actions.models import (
    ActionKind,
    ActionPayload,
    ExecutionResult,
    RemediationPlan,
    RemediationStep,
)
from actionflow.actions.preview import truncate_for_review
from actionflow.errors import LlmRequestError
from actionflow.llm.client import LlmClient

logger = logging.getLogger(__name__)

MAX_PLAN_STEPS_REQUESTED = 3
DEFAULT_STEP_TITLE = "Suggested step"

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)

REMEDIATION_INSTRUCTIONS = "\n".join(
    [
        "You are a senior developer diagnosing a failed terminal command.",
        "Always respond with strict JSON and no additional prose.",
        "JSON schema:",
        "{",
        '  "title"?: string,',
        '  "summary": string,',
        '  "steps": [',
        "    {",
        '      "title": string,',
        '      "description"?: string,',
        '      "action"?: {',
        '        "command": string,',
        '        "args"?: string[],',
        '        "type"?: "terminal" | "host" | "clipboard",',
        '        "description"?: string',
        "      }",
        "    }",
        "  ]",
        "}",
        f"Return at most {MAX_PLAN_STEPS_REQUESTED} ordered steps. "
        'Use real executables (e.g., "go", "npm", "./script.sh") with explicit arguments. '
        "Never output helper names like terminal.runInTerminal.",
    ],
)


@dataclass(frozen=True, slots=True)
class RemediationReply:
    """Parsed plan, or the raw answer when it was not a usable plan."""

    plan: RemediationPlan | None
    raw_text: str


def should_request_remediation(result: ExecutionResult) -> bool:
    return result.kind is ActionKind.TERMINAL and not result.success


class RemediationPlanner:
    """Ask the model once for an ordered recovery plan."""

    def __init__(self, llm: LlmClient, *, output_max_chars: int = 1_500) -> None:
        self._llm = llm
        self._output_max_chars = output_max_chars

    async def request_plan(
        self,
        action: ActionPayload,
        result: ExecutionResult,
        original_prompt: str,
        summary: str,
    ) -> RemediationPlan | None:
        reply = await self.request_reply(action, result, original_prompt, summary)
        return reply.plan if reply is not None else None

    async def request_reply(
        self,
        action: ActionPayload,
        result: ExecutionResult,
        original_prompt: str,
        summary: str,
    ) -> RemediationReply | None:
        """Return None when no request was made or the request itself failed."""

        if not should_request_remediation(result):
            return None
        prompt = self.build_prompt(action, result, original_prompt, summary)
        try:
            raw_text = await self._llm.request_text(prompt, REMEDIATION_INSTRUCTIONS)
        except (LlmRequestError, httpx.HTTPError) as error:
            logger.warning("Remediation request failed: %s", error)
            return None
        plan = parse_remediation_plan(raw_text)
        if plan is None:
            logger.info("Remediation answer was not a usable plan (%d chars)", len(raw_text))
        return RemediationReply(plan=plan, raw_text=raw_text)

    def build_prompt(
        self,
        action: ActionPayload,
        result: ExecutionResult,
        original_prompt: str,
        summary: str,
    ) -> str:
        command, args = build_terminal_command_parts(action)
        suggestions = "\n".join(
            f"{index}. {tip}" for index, tip in enumerate(result.suggestions, start=1)
        )
        exit_code = result.exit_code if result.exit_code is not None else "unknown"
        sections = [
            "Original request or context:",
            original_prompt or "(unspecified)",
            "Executed command:",
            command_line(command, args) or action.command,
            f"Working directory: {result.cwd or 'workspace root'}",
            f"Exit code: {exit_code}",
            "Execution summary:",
            summary,
            "stdout (trimmed):",
            truncate_for_review(result.stdout, self._output_max_chars) or "(empty)",
            "stderr (trimmed):",
            truncate_for_review(result.stderr, self._output_max_chars) or "(empty)",
            "Existing suggestions from the runner:",
            suggestions or "(none)",
        ]
        return "\n\n".join(sections)


def parse_remediation_plan(text: str | None) -> RemediationPlan | None:
    """Decode a plan from the whole text, a fenced block, or the outer brace span."""

    if not text:
        return None
    for candidate in _json_candidates(text):
        try:
            parsed = json.loads(candidate)
        except (json.JSONDecodeError, RecursionError):
            continue
        if isinstance(parsed, dict):
            return _plan_from_mapping(parsed)
    return None


def _json_candidates(text: str) -> list[str]:
    candidates: list[str] = []
    trimmed = text.strip()
    if trimmed:
        candidates.append(trimmed)
    candidates.extend(match.group(1) for match in _FENCED_BLOCK.finditer(text) if match.group(1))
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start : end + 1])
    return candidates


def _plan_from_mapping(payload: Mapping[str, object]) -> RemediationPlan | None:
    raw_steps = payload.get("steps")
    if not isinstance(raw_steps, list) or not raw_steps:
        return None
    steps = [step for step in (_step_from_value(item) for item in raw_steps) if step is not None]
    if not steps:
        return None
    title = payload.get("title")
    summary = payload.get("summary")
    return RemediationPlan(
        title=title.strip() if isinstance(title, str) and title.strip() else None,
        summary=summary.strip() if isinstance(summary, str) else "",
        steps=tuple(steps),
    )


def _step_from_value(value: object) -> RemediationStep | None:
    if not isinstance(value, dict):
        return None
    title = value.get("title")
    description = value.get("description", value.get("detail"))
    action = value.get("action")
    clean_title = title.strip() if isinstance(title, str) else ""
    clean_description = description if isinstance(description, str) else None
    clean_action = action if isinstance(action, dict) else None
    if not clean_title and not clean_description and clean_action is None:
        return None
    return RemediationStep(
        title=clean_title or DEFAULT_STEP_TITLE,
        description=clean_description,
        action=clean_action,
    )
