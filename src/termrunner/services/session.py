"""Long-lived interactive shell sessions."""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import re
import shlex
import time
import uuid

from termrunner.errors import SessionNotActiveError, SessionSpawnError, SessionStateError
from termrunner.services.executor import validate_command
from termrunner.services.process import (
    DEFAULT_ENCODING,
    build_env,
    default_shell,
    drain_stream,
    is_cmd_shell,
    spawn_kwargs,
    terminate_process_tree,
)
from termrunner.storage.models import CommandOptions, CommandResult

logger = logging.getLogger(__name__)

CLOSE_GRACE_PERIOD = 3.0
MARKER_PREFIX = "__TERMRUNNER_"


class SessionState(str, enum.Enum):
    CREATED = "created"
    OPENING = "opening"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"
    ERROR = "error"


class Session:
    """A shell process that runs successive commands and keeps its state.

    The session owns the process and is the only reader and writer of its
    pipes: one reader task per output stream appends decoded chunks to the
    output and error buffers. ``execute`` writes the command followed by a
    completion probe that prints a per-command marker together with the exit
    status on stdout, and the marker alone on stderr. The command is complete
    once both markers have arrived, which also guarantees that everything the
    command wrote to either stream is already buffered.

    Lifecycle: CREATED -> OPENING -> ACTIVE -> CLOSING -> CLOSED, or
    OPENING -> ERROR when the shell cannot be spawned. A timed out command
    kills the shell, leaving the session CLOSED.
    """

    def __init__(
        self,
        session_id: str = "session",
        options: CommandOptions | None = None,
        close_grace_period: float = CLOSE_GRACE_PERIOD,
    ) -> None:
        options = options or CommandOptions()
        self.session_id = session_id
        self._shell = options.shell or default_shell()
        self._cwd = options.working_directory or os.getcwd()
        self._env = build_env(options.env)
        self._encoding = options.encoding or DEFAULT_ENCODING
        self._default_timeout = options.timeout
        self._close_grace_period = close_grace_period

        self._state = SessionState.CREATED
        self._process: asyncio.subprocess.Process | None = None
        self._readers: list[asyncio.Task] = []
        self._output_buffer: list[str] = []
        self._error_buffer: list[str] = []
        self._history: list[str] = []
        self._lock = asyncio.Lock()
        self._changed = asyncio.Event()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def shell(self) -> str:
        return self._shell

    @property
    def cwd(self) -> str:
        return self._cwd

    @property
    def env(self) -> dict[str, str]:
        return dict(self._env)

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    async def open(self) -> None:
        """Spawn the shell with piped standard streams."""
        if self._state is not SessionState.CREATED:
            raise SessionStateError(
                self.session_id,
                f"Session '{self.session_id}' cannot be opened (state: {self._state.value})",
            )

        self._state = SessionState.OPENING
        args = [self._shell]
        if is_cmd_shell(self._shell):
            args.append("/Q")
        try:
            self._process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
                env=self._env,
                **spawn_kwargs(),
            )
        except OSError as e:
            self._state = SessionState.ERROR
            raise SessionSpawnError(self.session_id, f"Failed to start shell '{self._shell}': {e}") from e

        self._readers = [
            asyncio.create_task(drain_stream(self._process.stdout, self._output_buffer, self._encoding, self._changed.set)),
            asyncio.create_task(drain_stream(self._process.stderr, self._error_buffer, self._encoding, self._changed.set)),
        ]
        for task in self._readers:
            task.add_done_callback(lambda _: self._changed.set())

        self._state = SessionState.ACTIVE
        logger.info("Session %s opened (shell=%s, pid=%s, cwd=%s)", self.session_id, self._shell, self.pid, self._cwd)

    async def execute(self, command: str, timeout: float | None = None) -> CommandResult:
        """Run ``command`` in the shell and wait for its completion marker.

        A timeout (seconds) kills the shell and returns a failed result.
        """
        command = validate_command(command)
        if not self.is_session_active():
            raise SessionNotActiveError(self.session_id)
        if timeout is None:
            timeout = self._default_timeout

        async with self._lock:
            if not self.is_session_active():
                raise SessionNotActiveError(self.session_id)
            if not command.strip():
                return CommandResult.failure("Empty command")

            self.clear_buffers()
            self._history.append(command)
            token = f"{uuid.uuid4().hex}__"
            marker = MARKER_PREFIX + token

            start = time.monotonic()
            try:
                self._process.stdin.write((command + "\n" + self._completion_probe(token)).encode(self._encoding))
                await self._process.stdin.drain()
            except (BrokenPipeError, ConnectionResetError) as e:
                logger.warning("Session %s: shell is gone: %s", self.session_id, e)
                exit_code = await self._reap()
                return CommandResult.failure(
                    f"Shell exited: {e}",
                    stdout=self.get_output(),
                    exit_code=exit_code,
                    execution_time_ms=_elapsed_ms(start),
                )

            try:
                exit_code = await asyncio.wait_for(self._wait_for_marker(marker), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Session %s: command timed out after %ss: %s", self.session_id, timeout, command)
                await self._kill()
                errors = self.get_errors()
                note = f"Command timed out after {timeout}s"
                return CommandResult.failure(
                    f"{errors}\n{note}" if errors and not errors.endswith("\n") else errors + note,
                    stdout=self.get_output(),
                    execution_time_ms=_elapsed_ms(start),
                )

            return CommandResult(
                success=exit_code == 0,
                stdout=self.get_output(),
                stderr=self.get_errors(),
                exit_code=exit_code,
                execution_time_ms=_elapsed_ms(start),
            )

    async def change_directory(self, path: str) -> CommandResult:
        """``cd`` inside the shell; the tracked cwd only moves on success."""
        target = os.path.expanduser(path)
        if is_cmd_shell(self._shell):
            result = await self.execute(f'cd /d "{target}"')
        else:
            result = await self.execute(f"cd {shlex.quote(target)}")
        if result.success:
            self._cwd = os.path.normpath(os.path.join(self._cwd, target))
        return result

    def get_history(self) -> list[str]:
        return list(self._history)

    def get_output(self) -> str:
        return "".join(self._output_buffer)

    def get_errors(self) -> str:
        return "".join(self._error_buffer)

    def clear_buffers(self) -> None:
        # In place: the reader tasks hold references to these lists.
        self._output_buffer.clear()
        self._error_buffer.clear()

    def is_session_active(self) -> bool:
        return (
            self._state is SessionState.ACTIVE
            and self._process is not None
            and self._process.returncode is None
        )

    async def close(self) -> None:
        """Ask the shell to exit, then force-terminate after the grace period.

        Never raises.
        """
        if not self.is_session_active():
            if self._state is SessionState.ACTIVE:
                await self._reap()
            return

        self._state = SessionState.CLOSING
        try:
            try:
                self._process.stdin.write(b"exit\n")
                await self._process.stdin.drain()
                self._process.stdin.close()
            except (BrokenPipeError, ConnectionResetError):
                pass

            try:
                await asyncio.wait_for(self._process.wait(), timeout=self._close_grace_period)
            except asyncio.TimeoutError:
                logger.warning(
                    "Session %s did not exit within %.1fs, terminating",
                    self.session_id,
                    self._close_grace_period,
                )
            # Also reaps background jobs left in the shell's process group.
            await terminate_process_tree(self._process)
        except Exception:
            logger.exception("Error while closing session %s", self.session_id)
        finally:
            await self._stop_readers()
            self._state = SessionState.CLOSED
            logger.info("Session %s closed", self.session_id)

    async def __aenter__(self) -> Session:
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _completion_probe(self, token: str) -> str:
        # POSIX: the marker is printed from two pieces so it never appears
        # verbatim in the probe's own text (e.g. under `set -x`).
        if is_cmd_shell(self._shell):
            return f"echo {MARKER_PREFIX}{token}%ERRORLEVEL%\r\necho {MARKER_PREFIX}{token} 1>&2\r\n"
        return (
            f"printf '%s%s%d\\n' '{MARKER_PREFIX}' '{token}' \"$?\"; "
            f"printf '%s%s\\n' '{MARKER_PREFIX}' '{token}' >&2\n"
        )

    async def _wait_for_marker(self, marker: str) -> int | None:
        """Wait until both markers are buffered, strip them, return the exit status.

        Returns the shell's own exit status if it exits first.
        """
        status_pattern = re.compile(re.escape(marker) + r"(-?\d+)[ \t]*\r?\n")
        error_pattern = re.compile(re.escape(marker) + r"[ \t]*\r?\n")
        while True:
            self._changed.clear()
            output = self.get_output()
            errors = self.get_errors()
            status = status_pattern.search(output)
            error_mark = error_pattern.search(errors)
            if status and error_mark:
                _replace(self._output_buffer, output[: status.start()] + output[status.end() :])
                _replace(self._error_buffer, errors[: error_mark.start()] + errors[error_mark.end() :])
                return int(status.group(1))
            if all(task.done() for task in self._readers):
                return await self._reap()
            await self._changed.wait()

    async def _reap(self) -> int | None:
        """Collect a shell that exited on its own."""
        pending = [task for task in self._readers if not task.done()]
        if pending:
            # Let the readers pick up whatever the shell wrote before exiting.
            await asyncio.wait(pending, timeout=1.0)
        await self._stop_readers()
        exit_code = await self._process.wait() if self._process else None
        logger.info("Session %s: shell exited with %s", self.session_id, exit_code)
        self._state = SessionState.CLOSED
        return exit_code

    async def _kill(self) -> None:
        self._state = SessionState.CLOSING
        try:
            await terminate_process_tree(self._process)
        except Exception:
            logger.exception("Error while killing session %s", self.session_id)
        finally:
            await self._stop_readers()
            self._state = SessionState.CLOSED

    async def _stop_readers(self) -> None:
        for task in self._readers:
            if not task.done():
                task.cancel()
        if self._readers:
            await asyncio.gather(*self._readers, return_exceptions=True)


def _replace(buffer: list[str], text: str) -> None:
    buffer.clear()
    if text:
        buffer.append(text)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
