"""Continue-on-error replay of a planner's command list inside a shell session."""

from __future__ import annotations

import logging
import time

from termrunner.services.runner import CommandRunner
from termrunner.storage.models import BatchReport, CommandOutcome
from termrunner.utils.formatting import format_summary

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "system-interaction-session"
NO_COMMANDS = "No commands to execute"


class BatchExecutor:
    """Run every command of a batch in one session, whatever fails.

    Unlike ``CommandRunner.run_sequence`` this does not stop on failure:
    each command gets a result. Commands share shell state (cwd, variables).
    If a command kills the shell (``exit``, or a timeout) a fresh session is
    opened for the next one.
    """

    def __init__(
        self,
        runner: CommandRunner,
        session_id: str = DEFAULT_SESSION_ID,
        timeout: float | None = None,
    ) -> None:
        self.runner = runner
        self.session_id = session_id
        self.timeout = timeout

    async def execute_commands(self, commands: list[str]) -> str:
        report = await self.execute_commands_with_details(commands)
        return report.summary

    async def execute_commands_with_details(self, commands: list[str]) -> BatchReport:
        if not commands:
            return BatchReport(summary=NO_COMMANDS)

        outcomes: list[CommandOutcome] = []
        start = time.monotonic()
        try:
            for command in commands:
                await self._ensure_session()
                result = await self.runner.run_in_session(self.session_id, command, self.timeout)
                if not result.success:
                    logger.info("Batch command failed (exit=%s): %s", result.exit_code, command)
                outcomes.append(CommandOutcome(command=command, result=result))
        finally:
            await self.runner.close_session(self.session_id)

        total_time_ms = int((time.monotonic() - start) * 1000)
        successful = sum(1 for o in outcomes if o.result.success)
        return BatchReport(
            success=successful == len(outcomes),
            total_commands=len(outcomes),
            successful_commands=successful,
            failed_commands=len(outcomes) - successful,
            total_time_ms=total_time_ms,
            results=outcomes,
            summary=format_summary(outcomes, total_time_ms),
        )

    async def cleanup(self) -> None:
        await self.runner.close_all_sessions()

    async def _ensure_session(self) -> None:
        session = self.runner.get_session(self.session_id)
        if session is not None and session.is_session_active():
            return
        if session is not None:
            logger.warning("Session %s died, opening a new one", self.session_id)
            await self.runner.close_session(self.session_id)
        await self.runner.create_session(self.session_id)
