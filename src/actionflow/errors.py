"""Exception hierarchy shared across the action pipeline."""

from __future__ import annotations


class ActionflowError(Exception):
    """Base class for errors raised by actionflow."""


class InvalidActionPayload(ActionflowError, ValueError):
    """Decoded JSON does not describe a usable action."""


class PendingActionNotFound(ActionflowError, KeyError):
    """Pending action id is unknown or was already consumed."""

    def __init__(self, action_id: str) -> None:
        super().__init__(action_id)
        self.action_id = action_id

    def __str__(self) -> str:
        return f"Pending action not found: {self.action_id}"


class LlmRequestError(ActionflowError, RuntimeError):
    """LLM endpoint call failed or returned a non-success status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
