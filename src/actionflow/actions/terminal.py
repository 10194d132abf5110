"""Live terminal sessions for spawned action processes."""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import errno
import logging
import os
from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from actionflow.actions.classification import command_line, needs_shell

logger = logging.getLogger(__name__)

_READ_CHUNK_BYTES = 4096

EXTRA_BIN_DIRS: tuple[str, ...] = (
    "/usr/local/bin",
    "/usr/local/sbin",
    "/usr/local/go/bin",
    "/opt/homebrew/bin",
    "/opt/homebrew/sbin",
    "/opt/homebrew/opt/go/bin",
)


class TerminalRunState(str, Enum):
    """Lifecycle of one spawned process."""

    IDLE = "idle"
    SPAWNING = "spawning"
    RUNNING = "running"
    EXITED = "exited"
    SPAWN_FAILED = "spawn_failed"


@dataclass(frozen=True, slots=True)
class TerminalOutcome:
    """Raw process outcome before suggestions are attached."""

    exit_code: int | None
    stdout: str
    stderr: str
    spawn_error: str | None = None


def build_execution_environment(
    base_env: Mapping[str, str],
    *,
    os_name: str | None = None,
) -> dict[str, str]:
    """Copy `base_env` and prepend common toolchain bin dirs to PATH.

    Windows environments are returned unchanged.
    """

    env = dict(base_env)
    if (os_name or os.name) == "nt":
        return env

    extra_dirs = list(EXTRA_BIN_DIRS)
    goroot = env.get("GOROOT")
    if goroot:
        extra_dirs.append(str(Path(goroot) / "bin"))
    gobin = env.get("GOBIN")
    if gobin:
        extra_dirs.append(gobin)
    gopath = env.get("GOPATH")
    if gopath:
        extra_dirs.append(str(Path(gopath) / "bin"))
    home = env.get("HOME")
    if home:
        extra_dirs.append(str(Path(home) / "go" / "bin"))

    current = [part for part in env.get("PATH", "").split(":") if part]
    injected: list[str] = []
    for directory in extra_dirs:
        directory = directory.strip()
        if not directory or directory in current or directory in injected:
            continue
        injected.append(directory)
    env["PATH"] = ":".join([*injected, *current])
    return env


def resolve_working_directory(workspace_roots: Sequence[Path | str]) -> str:
    if workspace_roots:
        return str(workspace_roots[0])
    return os.getcwd()


def spawn_argv(command: str, args: Sequence[str], *, os_name: str | None = None) -> list[str]:
    """Route command lines with shell operators through the platform shell."""

    if needs_shell(command, args):
        line = command_line(command, args)
        if (os_name or os.name) == "nt":
            return ["cmd", "/d", "/c", line]
        return ["/bin/sh", "-c", line]
    return [command, *args]


def describe_spawn_error(command: str, error: BaseException) -> str:
    code = getattr(error, "errno", None)
    code_name = errno.errorcode.get(code or 0, "")
    reason = getattr(error, "strerror", None) or str(error)
    if code_name:
        return f"spawn {command} {code_name}: {reason}"
    return f"spawn {command} failed: {reason}"


class TerminalSession:
    """One spawned process attached to a live output surface.

    `start()` moves IDLE → SPAWNING → RUNNING, or to SPAWN_FAILED when the
    executable cannot be started. Output chunks are exposed through
    `output()` with newlines translated for terminal display, and the full
    stdout/stderr are buffered into the single `result` future. With
    `stream_output=False` nothing is queued and `output()` ends at once.
    `close()` kills the process; there is no timeout.
    """

    def __init__(
        self,
        command: str,
        args: Sequence[str],
        *,
        cwd: str,
        env: Mapping[str, str],
        os_name: str | None = None,
        stream_output: bool = True,
    ) -> None:
        self.command = command
        self.args = list(args)
        self.cwd = cwd
        self._env = dict(env)
        self._os_name = os_name
        self._stream_output = stream_output
        self._state = TerminalRunState.IDLE
        self._process: asyncio.subprocess.Process | None = None
        self._pump: asyncio.Task[None] | None = None
        self._result: asyncio.Future[TerminalOutcome] | None = None
        self._output: asyncio.Queue[str | None] = asyncio.Queue()
        self._stdout: list[str] = []
        self._stderr: list[str] = []
        self._closed = False

    @property
    def state(self) -> TerminalRunState:
        return self._state

    @property
    def result(self) -> asyncio.Future[TerminalOutcome]:
        if self._result is None:
            raise RuntimeError("Terminal session has not been started.")
        return self._result

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    async def start(self) -> None:
        if self._state is not TerminalRunState.IDLE:
            raise RuntimeError(f"Terminal session already {self._state.value}.")
        self._result = asyncio.get_running_loop().create_future()
        self._state = TerminalRunState.SPAWNING
        self._write(f"Running {command_line(self.command, self.args) or self.command}\r\n\r\n")

        argv = spawn_argv(self.command, self.args, os_name=self._os_name)
        try:
            self._process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=self.cwd,
                env=self._env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as error:
            self._fail_spawn(describe_spawn_error(self.command, error))
            return
        except BaseException as error:
            self._fail_spawn(describe_spawn_error(self.command, error))
            raise

        self._state = TerminalRunState.RUNNING
        logger.debug("Spawned pid=%s: %s", self._process.pid, argv)
        if self._closed:
            self._kill()
        self._pump = asyncio.create_task(self._pump_output(self._process))

    async def wait(self) -> TerminalOutcome:
        return await self.result

    async def output(self) -> AsyncIterator[str]:
        """Yield display chunks until the session finishes."""

        if not self._stream_output:
            return
        while True:
            chunk = await self._output.get()
            if chunk is None:
                return
            yield chunk

    def close(self) -> None:
        """Close the surface; a running process is killed."""

        self._closed = True
        self._kill()

    def _kill(self) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return
        logger.info("Killing pid=%s after terminal close", process.pid)
        with contextlib.suppress(ProcessLookupError):
            process.kill()

    async def _pump_output(self, process: asyncio.subprocess.Process) -> None:
        try:
            await asyncio.gather(
                self._drain(process.stdout, self._stdout),
                self._drain(process.stderr, self._stderr),
            )
            exit_code = await process.wait()
        except Exception as error:
            logger.exception("Terminal output pump failed for %s", self.command)
            self._kill()
            self._state = TerminalRunState.EXITED
            self._finish(
                TerminalOutcome(
                    exit_code=process.returncode,
                    stdout="".join(self._stdout),
                    stderr="".join(self._stderr) + str(error),
                ),
            )
            return

        self._state = TerminalRunState.EXITED
        self._write(f"\r\nProcess exited with code {exit_code}\r\n")
        self._finish(
            TerminalOutcome(
                exit_code=exit_code,
                stdout="".join(self._stdout),
                stderr="".join(self._stderr),
            ),
        )

    async def _drain(self, stream: asyncio.StreamReader | None, sink: list[str]) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(_READ_CHUNK_BYTES)
            if not chunk:
                break
            self._capture(decoder.decode(chunk), sink)
        self._capture(decoder.decode(b"", final=True), sink)

    def _capture(self, text: str, sink: list[str]) -> None:
        if not text:
            return
        sink.append(text)
        self._write(text.replace("\n", "\r\n"))

    def _write(self, text: str) -> None:
        if not self._stream_output:
            return
        if self._result is not None and self._result.done():
            return
        self._output.put_nowait(text)

    def _fail_spawn(self, message: str) -> None:
        logger.info("Terminal action failed to start: %s", message)
        self._state = TerminalRunState.SPAWN_FAILED
        self._write(f"\r\n{message}\r\n")
        self._finish(
            TerminalOutcome(
                exit_code=None,
                stdout="",
                stderr=message,
                spawn_error=message,
            ),
        )

    def _finish(self, outcome: TerminalOutcome) -> None:
        if self._result is None or self._result.done():
            return
        self._result.set_result(outcome)
        if self._stream_output:
            self._output.put_nowait(None)
