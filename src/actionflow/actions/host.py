"""Host platform interface and the local process implementation."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import click
import pyperclip

from actionflow.actions.terminal import TerminalSession

logger = logging.getLogger(__name__)

HostCommandHandler = Callable[..., Any]
TerminalDisplay = Callable[[str], None]


@dataclass(frozen=True, slots=True)
class HostResult:
    """Outcome of a host primitive call."""

    ok: bool
    message: str = ""


class HostPlatform(Protocol):
    """Primitives the surrounding application provides to the executor."""

    async def execute_named_command(self, name: str, *args: Any) -> HostResult:
        """Run a command registered with the host by name."""

    async def write_clipboard(self, text: str) -> HostResult:
        """Replace the system clipboard contents."""

    async def spawn_in_terminal(
        self,
        command: str,
        args: Sequence[str],
        *,
        cwd: str,
        env: Mapping[str, str],
    ) -> TerminalSession:
        """Start `command` attached to a live output surface."""

    def list_workspace_roots(self) -> list[Path]:
        """Return workspace roots, first one is the default cwd."""


class LocalHostPlatform:
    """Host backed by this process: pyperclip, a command table, local subprocesses."""

    def __init__(
        self,
        *,
        workspace_roots: Sequence[Path] = (),
        display: TerminalDisplay | None = None,
        commands: Mapping[str, HostCommandHandler] | None = None,
    ) -> None:
        self._workspace_roots = list(workspace_roots)
        self._display = display
        self._commands: dict[str, HostCommandHandler] = {"host.openPath": _open_path}
        if commands:
            self._commands.update(commands)
        self._mirrors: set[asyncio.Task[None]] = set()

    def register_command(self, name: str, handler: HostCommandHandler) -> None:
        self._commands[name] = handler

    async def execute_named_command(self, name: str, *args: Any) -> HostResult:
        handler = self._commands.get(name)
        if handler is None:
            return HostResult(ok=False, message=f"command '{name}' not found")
        try:
            returned = handler(*args)
            if inspect.isawaitable(returned):
                returned = await returned
        except Exception as error:
            logger.warning("Host command %s failed: %s", name, error)
            return HostResult(ok=False, message=str(error) or type(error).__name__)
        if isinstance(returned, HostResult):
            return returned
        message = "" if returned is None else str(returned)
        return HostResult(ok=True, message=message or "Host command executed.")

    async def write_clipboard(self, text: str) -> HostResult:
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as error:
            logger.warning("Clipboard write failed: %s", error)
            return HostResult(ok=False, message=f"Failed to write to clipboard: {error}")
        return HostResult(ok=True, message="Copied text to clipboard.")

    async def spawn_in_terminal(
        self,
        command: str,
        args: Sequence[str],
        *,
        cwd: str,
        env: Mapping[str, str],
    ) -> TerminalSession:
        session = TerminalSession(
            command,
            args,
            cwd=cwd,
            env=env,
            stream_output=self._display is not None,
        )
        if self._display is not None:
            mirror = asyncio.create_task(_mirror_output(session, self._display))
            self._mirrors.add(mirror)
            mirror.add_done_callback(self._mirrors.discard)
        await session.start()
        return session

    def list_workspace_roots(self) -> list[Path]:
        return list(self._workspace_roots)

    async def drain_display(self) -> None:
        """Wait until terminal output has been forwarded to the display."""

        if self._mirrors:
            await asyncio.gather(*self._mirrors)


async def _mirror_output(session: TerminalSession, display: TerminalDisplay) -> None:
    async for chunk in session.output():
        display(chunk)


def _open_path(path: str, *_: Any) -> HostResult:
    target = Path(str(path)).expanduser()
    if not target.exists():
        return HostResult(ok=False, message=f"Path does not exist: {target}")
    exit_code = click.launch(str(target))
    if exit_code != 0:
        return HostResult(ok=False, message=f"Could not open {target} (exit code {exit_code})")
    return HostResult(ok=True, message=f"Opened {target}")
