"""Turn remediation plans into todo items backed by pending actions."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

from actionflow.actions.models import (
    ActionPayload,
    RemediationPlan,
    TodoItem,
    TodoListPayload,
)
from actionflow.actions.preview import build_action_snippet
from actionflow.actions.registry import PendingActionRegistry, random_suffix
from actionflow.errors import InvalidActionPayload

logger = logging.getLogger(__name__)

MAX_TODO_ITEMS = 4
DEFAULT_TODO_TITLE = "Suggested step"
DEFAULT_LIST_TITLE = "Remediation steps"
DEFAULT_LIST_DESCRIPTION = (
    "Steps proposed to resolve the failure. Review each command before running it."
)


def build_todo_list(
    plan: RemediationPlan | None,
    origin: object,
    original_prompt: str,
    registry: PendingActionRegistry,
) -> TodoListPayload | None:
    """Register runnable steps against `origin` and describe the rest.

    Only the first four steps are used. Returns None when nothing could be
    listed, so the caller shows the plan summary alone.
    """

    if plan is None or not plan.steps:
        return None

    items: list[TodoItem] = []
    for step in plan.steps[:MAX_TODO_ITEMS]:
        action_id: str | None = None
        snippet: str | None = None
        if step.action is not None:
            payload = normalize_recommended_action(step.action, step.description)
            if payload is not None:
                action_id = registry.register(payload, origin, original_prompt)
                snippet = build_action_snippet(payload)
        items.append(
            TodoItem(
                id=f"todo-{int(time.time() * 1000)}-{random_suffix(4)}",
                title=step.title.strip() or DEFAULT_TODO_TITLE,
                detail=step.description,
                action_id=action_id,
                snippet=snippet,
            ),
        )

    if not items:
        return None
    logger.debug(
        "Built remediation todo list: items=%d runnable=%d",
        len(items),
        sum(1 for item in items if item.action_id),
    )
    return TodoListPayload(
        title=plan.title or DEFAULT_LIST_TITLE,
        description=plan.summary or DEFAULT_LIST_DESCRIPTION,
        items=tuple(items),
    )


def normalize_recommended_action(
    action: Mapping[str, Any],
    detail: str | None = None,
) -> ActionPayload | None:
    """Build a payload from a plan step action; None when it has no usable command."""

    command = action.get("command")
    if not isinstance(command, str) or not command.strip():
        return None
    description = action.get("description")
    normalized: dict[str, Any] = {
        "command": command.strip(),
        "description": description if isinstance(description, str) else detail,
        "type": action.get("type", action.get("kind")),
        "text": action.get("text"),
    }
    if "args" in action:
        normalized["args"] = action["args"]
    try:
        return ActionPayload.from_mapping(normalized)
    except InvalidActionPayload:
        return None
