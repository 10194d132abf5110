"""Execute action payloads through clipboard, host-command, or terminal strategies."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from actionflow.actions.classification import (
    HOST_COMMAND_SUGGESTION,
    build_terminal_command_parts,
    classify_action,
    suggest_for_failure,
)
from actionflow.actions.host import HostPlatform
from actionflow.actions.models import ActionKind, ActionPayload, ExecutionResult, stringify_arg
from actionflow.actions.terminal import (
    build_execution_environment,
    resolve_working_directory,
)

logger = logging.getLogger(__name__)


class ActionExecutor:
    """Classify a payload and run it through exactly one strategy."""

    def __init__(
        self,
        host: HostPlatform,
        *,
        base_env: Mapping[str, str] | None = None,
        os_name: str | None = None,
    ) -> None:
        self._host = host
        self._base_env = base_env
        self._os_name = os_name

    async def execute(self, payload: ActionPayload) -> ExecutionResult:
        kind = classify_action(payload)
        logger.info("Executing %s action: %s", kind.value, payload.command)
        if kind is ActionKind.CLIPBOARD:
            return await self.run_clipboard(payload)
        if kind is ActionKind.HOST:
            return await self.run_host_command(payload)
        return await self.run_terminal(payload)

    async def run_clipboard(self, payload: ActionPayload) -> ExecutionResult:
        text = clipboard_text(payload)
        written = await self._host.write_clipboard(text)
        return ExecutionResult(
            success=written.ok,
            kind=ActionKind.CLIPBOARD,
            command=payload.command,
            args=payload.string_args(),
            stdout=text if written.ok else None,
            stderr=None if written.ok else written.message,
        )

    async def run_host_command(self, payload: ActionPayload) -> ExecutionResult:
        args = list(payload.args or ())
        outcome = await self._host.execute_named_command(payload.command, *args)
        if outcome.ok:
            return ExecutionResult(
                success=True,
                kind=ActionKind.HOST,
                command=payload.command,
                args=payload.string_args(),
                stdout=outcome.message,
            )
        logger.warning("Host command %s failed: %s", payload.command, outcome.message)
        return ExecutionResult(
            success=False,
            kind=ActionKind.HOST,
            command=payload.command,
            args=payload.string_args(),
            stderr=outcome.message,
            suggestions=(HOST_COMMAND_SUGGESTION,),
        )

    async def run_terminal(self, payload: ActionPayload) -> ExecutionResult:
        command, args = build_terminal_command_parts(payload)
        cwd = resolve_working_directory(self._host.list_workspace_roots())
        env = build_execution_environment(
            os.environ if self._base_env is None else self._base_env,
            os_name=self._os_name,
        )
        session = await self._host.spawn_in_terminal(command, args, cwd=cwd, env=env)
        outcome = await session.wait()

        spawn_failed = outcome.spawn_error is not None
        success = not spawn_failed and outcome.exit_code == 0
        suggestions: tuple[str, ...] = ()
        if not success:
            suggestions = suggest_for_failure(
                command=command,
                exit_code=outcome.exit_code,
                stdout=outcome.stdout,
                stderr=outcome.stderr,
                spawn_failed=spawn_failed,
            )
            logger.info(
                "Terminal action failed: command=%s exit_code=%s spawn_failed=%s",
                command,
                outcome.exit_code,
                spawn_failed,
            )
        return ExecutionResult(
            success=success,
            kind=ActionKind.TERMINAL,
            command=command,
            args=tuple(args),
            stdout=outcome.stdout,
            stderr=outcome.stderr,
            exit_code=outcome.exit_code,
            cwd=cwd,
            suggestions=suggestions,
        )


def clipboard_text(payload: ActionPayload) -> str:
    """Pick `text`, then the first arg, then the raw command."""

    if payload.text is not None:
        return payload.text
    if payload.args:
        return stringify_arg(payload.args[0])
    return payload.command
