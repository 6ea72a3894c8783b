"""One-shot shell command executor."""

from __future__ import annotations

import asyncio
import logging
import time

from termrunner.errors import InvalidCommandError
from termrunner.services.process import (
    DEFAULT_ENCODING,
    GRACEFUL_TIMEOUT,
    build_env,
    drain_stream,
    spawn_kwargs,
    terminate_process_tree,
)
from termrunner.storage.models import CommandOptions, CommandResult

logger = logging.getLogger(__name__)


def validate_command(command: object) -> str:
    """Reject values that cannot be handed to a shell."""
    if not isinstance(command, str):
        raise InvalidCommandError(f"Command must be a string, got {type(command).__name__}")
    if "\x00" in command:
        raise InvalidCommandError("Command contains a NUL byte")
    return command


class OneShotExecutor:
    """Run a single command in a fresh shell process.

    Never raises for execution outcomes: non-zero exit, timeout and spawn
    failure all come back as ``CommandResult(success=False, ...)``.
    """

    async def run(self, command: str, options: CommandOptions | None = None) -> CommandResult:
        command = validate_command(command)
        options = options or CommandOptions()

        if not command.strip():
            return CommandResult.failure("Empty command")

        encoding = options.encoding or DEFAULT_ENCODING
        stdout_chunks: list[str] = []
        stderr_chunks: list[str] = []
        exit_code: int | None = None
        timed_out = False

        start = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=options.working_directory,
                env=build_env(options.env),
                executable=options.shell,
                **spawn_kwargs(),
            )
        except OSError as e:
            logger.warning("Failed to spawn %r: %s", command, e)
            return CommandResult.failure(str(e), execution_time_ms=_elapsed_ms(start))

        readers = asyncio.gather(
            drain_stream(proc.stdout, stdout_chunks, encoding),
            drain_stream(proc.stderr, stderr_chunks, encoding),
        )
        try:
            # One deadline for both: the command may close its pipes and keep running.
            _, exit_code = await asyncio.wait_for(
                asyncio.gather(asyncio.shield(readers), proc.wait()),
                timeout=options.timeout,
            )
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning("Command timed out after %ss: %s", options.timeout, command)
            await terminate_process_tree(proc)
            try:
                # A grandchild that left the process group can keep the pipes open.
                await asyncio.wait_for(readers, timeout=GRACEFUL_TIMEOUT)
            except asyncio.TimeoutError:
                logger.debug("Output pipes still open after kill: %s", command)
        except Exception as e:
            logger.exception("Shell execution error")
            await terminate_process_tree(proc)
            readers.cancel()
            stderr_chunks.append(str(e))

        stdout = "".join(stdout_chunks)
        stderr = "".join(stderr_chunks)
        if timed_out:
            note = f"Command timed out after {options.timeout}s"
            stderr = f"{stderr}\n{note}" if stderr and not stderr.endswith("\n") else stderr + note

        return CommandResult(
            success=exit_code == 0,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            execution_time_ms=_elapsed_ms(start),
        )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
