"""Command runner: one-shot execution, batch policies and the session registry."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import sys
from dataclasses import replace

from termrunner.config import AppConfig
from termrunner.errors import SessionExistsError, SessionNotFoundError
from termrunner.services.executor import OneShotExecutor
from termrunner.services.session import Session
from termrunner.storage.models import CommandOptions, CommandResult, SystemInfo
from termrunner.utils.system import get_system_info

logger = logging.getLogger(__name__)


def options_from_config(config: AppConfig) -> CommandOptions:
    """Default spawn options derived from the ``[shell]`` config section."""
    return CommandOptions(
        working_directory=config.shell.working_directory or None,
        timeout=config.shell.timeout or None,
        shell=config.shell.shell or None,
        encoding=config.shell.encoding or None,
    )


class CommandRunner:
    """Dispatch commands one-shot, in batches, or into named sessions.

    Each runner owns its own session registry. Registry inserts and removals
    happen under an ``asyncio.Lock``.
    """

    def __init__(self, config: AppConfig | None = None, options: CommandOptions | None = None) -> None:
        self.config = config or AppConfig()
        self.default_options = options_from_config(self.config).merged_with(options)
        self._executor = OneShotExecutor()
        self._sessions: dict[str, Session] = {}
        self._registry_lock = asyncio.Lock()

    async def run(self, command: str, options: CommandOptions | None = None) -> CommandResult:
        """Execute a single command in a fresh shell."""
        merged = self.default_options.merged_with(options)
        result = await self._executor.run(command, merged)
        logger.debug("run %r -> exit=%s (%dms)", command, result.exit_code, result.execution_time_ms)
        return result

    async def run_sequence(self, commands: list[str], options: CommandOptions | None = None) -> list[CommandResult]:
        """Run commands in order, stopping after the first failure."""
        results: list[CommandResult] = []
        for command in commands:
            result = await self.run(command, options)
            results.append(result)
            if not result.success:
                logger.info("Sequence stopped at command %d/%d: %s", len(results), len(commands), command)
                break
        return results

    async def run_parallel(self, commands: list[str], options: CommandOptions | None = None) -> list[CommandResult]:
        """Run all commands concurrently; one result per command, in input order."""
        return list(await asyncio.gather(*(self.run(command, options) for command in commands)))

    async def run_with_retry(
        self,
        command: str,
        options: CommandOptions | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
    ) -> CommandResult:
        """Run ``command`` up to ``max_retries`` times until it succeeds."""
        if max_retries is None:
            max_retries = self.config.retry.max_retries
        if retry_delay is None:
            retry_delay = self.config.retry.retry_delay
        max_retries = max(1, max_retries)

        result = await self.run(command, options)
        attempt = 1
        while not result.success and attempt < max_retries:
            logger.info("Attempt %d/%d failed, retrying in %.1fs: %s", attempt, max_retries, retry_delay, command)
            await asyncio.sleep(retry_delay)
            attempt += 1
            result = await self.run(command, options)
        return result

    async def create_session(self, session_id: str, options: CommandOptions | None = None) -> Session:
        """Open a new shell session and register it under ``session_id``."""
        async with self._registry_lock:
            if session_id in self._sessions:
                raise SessionExistsError(session_id)
            # Sessions take their default per-command timeout from [session].
            defaults = replace(self.default_options, timeout=self.config.session.timeout or None)
            session = Session(
                session_id,
                defaults.merged_with(options),
                close_grace_period=self.config.session.close_grace_period,
            )
            await session.open()
            self._sessions[session_id] = session
        return session

    def get_session(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    async def run_in_session(self, session_id: str, command: str, timeout: float | None = None) -> CommandResult:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return await session.execute(command, timeout)

    async def close_session(self, session_id: str) -> None:
        """Close and unregister a session. Unknown ids are ignored."""
        session = self._sessions.get(session_id)
        if session is None:
            return
        await session.close()
        async with self._registry_lock:
            if self._sessions.get(session_id) is session:
                del self._sessions[session_id]

    async def close_all_sessions(self) -> None:
        await asyncio.gather(*(self.close_session(session_id) for session_id in list(self._sessions)))

    def get_active_sessions(self) -> list[str]:
        return [session_id for session_id, session in self._sessions.items() if session.is_session_active()]

    async def command_exists(self, name: str) -> bool:
        """Check whether ``name`` resolves to an executable on the host's PATH.

        Shell builtins, keywords and aliases do not count: ``command -v``
        prints a bare name for those instead of a path.
        """
        if sys.platform == "win32":
            result = await self.run(f"where {name}")
            return result.success and bool(result.stdout.strip())
        result = await self.run(f"command -v {shlex.quote(name)}")
        path = result.stdout.strip()
        return result.success and os.path.isabs(path)

    def get_system_info(self) -> SystemInfo:
        return get_system_info()

    async def __aenter__(self) -> CommandRunner:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close_all_sessions()
