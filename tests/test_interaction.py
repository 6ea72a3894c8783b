"""Tests for the continue-on-error batch executor."""

from __future__ import annotations

import sys

import pytest

from termrunner.services.interaction import DEFAULT_SESSION_ID, NO_COMMANDS, BatchExecutor

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell commands")


@pytest.fixture
def batch(runner):
    return BatchExecutor(runner)


class TestExecuteCommands:
    @pytest.mark.asyncio
    async def test_empty_list(self, batch):
        assert await batch.execute_commands([]) == NO_COMMANDS

    @pytest.mark.asyncio
    async def test_summary(self, batch):
        summary = await batch.execute_commands(['echo "Hello"', "pwd"])
        assert "EXECUTION SUMMARY" in summary
        assert "Total Commands: 2" in summary
        assert "✅ All Successful" in summary
        assert 'echo "Hello"' in summary

    @pytest.mark.asyncio
    async def test_failures_reported(self, batch):
        summary = await batch.execute_commands(['echo "Success"', "nonexistent-command", 'echo "Continue"'])
        assert "Total Commands: 3" in summary
        assert "Some Failed" in summary

    @pytest.mark.asyncio
    async def test_session_closed_afterwards(self, batch, runner):
        await batch.execute_commands(['echo "Test"'])
        assert DEFAULT_SESSION_ID not in runner.get_active_sessions()
        assert runner.get_session(DEFAULT_SESSION_ID) is None


class TestExecuteCommandsWithDetails:
    @pytest.mark.asyncio
    async def test_empty_list(self, batch):
        report = await batch.execute_commands_with_details([])
        assert report.success
        assert report.total_commands == 0
        assert report.results == []

    @pytest.mark.asyncio
    async def test_counts(self, batch):
        report = await batch.execute_commands_with_details(['echo "Success"', "nonexistent-cmd", "pwd"])
        assert report.total_commands == 3
        assert report.successful_commands == 2
        assert report.failed_commands == 1
        assert not report.success
        assert report.results[0].command == 'echo "Success"'
        assert report.results[1].result.exit_code == 127

    @pytest.mark.asyncio
    async def test_commands_share_shell_state(self, batch, tmp_path):
        report = await batch.execute_commands_with_details([f"cd '{tmp_path}'", "pwd"])
        assert report.success
        assert report.results[1].result.stdout.strip().endswith(tmp_path.name)

    @pytest.mark.asyncio
    async def test_continues_after_shell_exit(self, batch):
        report = await batch.execute_commands_with_details(['echo "Before"', "exit 1", 'echo "After"'])
        assert report.total_commands == 3
        assert [o.result.success for o in report.results] == [True, False, True]
        assert "After" in report.results[2].result.stdout

    @pytest.mark.asyncio
    async def test_continues_after_timeout(self, runner):
        batch = BatchExecutor(runner, timeout=0.3)
        report = await batch.execute_commands_with_details(["sleep 10", "echo next"])
        assert not report.results[0].result.success
        assert report.results[1].result.success
        assert runner.get_active_sessions() == []


class TestCleanup:
    @pytest.mark.asyncio
    async def test_cleanup_without_sessions(self, batch):
        await batch.cleanup()

    @pytest.mark.asyncio
    async def test_cleanup_closes_all(self, batch, runner):
        await runner.create_session("other")
        await batch.cleanup()
        assert runner.get_active_sessions() == []
