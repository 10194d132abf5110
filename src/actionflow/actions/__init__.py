"""Action pipeline for model-proposed commands.

Model text is parsed into an `ActionPayload`, held in a
`PendingActionRegistry` until a human approves it, and executed by
`ActionExecutor` through the clipboard, a named host command, or a spawned
process on a live terminal surface. A failed terminal run is handed to
`RemediationPlanner`, whose steps come back as new pending actions.
"""

from actionflow.actions.executor import ActionExecutor
from actionflow.actions.extractor import extract_action_payload
from actionflow.actions.host import HostPlatform, HostResult, LocalHostPlatform
from actionflow.actions.models import (
    ActionKind,
    ActionPayload,
    ExecutionResult,
    PendingActionEntry,
    RemediationPlan,
    RemediationStep,
    TodoItem,
    TodoListPayload,
)
from actionflow.actions.registry import PendingActionRegistry
from actionflow.actions.remediation import RemediationPlanner
from actionflow.actions.session import ActionSession, ActionView
from actionflow.actions.todo import build_todo_list

__all__ = [
    "ActionExecutor",
    "ActionKind",
    "ActionPayload",
    "ActionSession",
    "ActionView",
    "ExecutionResult",
    "HostPlatform",
    "HostResult",
    "LocalHostPlatform",
    "PendingActionEntry",
    "PendingActionRegistry",
    "RemediationPlan",
    "RemediationPlanner",
    "RemediationStep",
    "TodoItem",
    "TodoListPayload",
    "build_todo_list",
    "extract_action_payload",
]
