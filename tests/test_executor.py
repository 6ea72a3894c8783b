"""Tests for the one-shot executor."""

from __future__ import annotations

import sys
from unittest.mock import patch

import pytest

from termrunner.errors import InvalidCommandError
from termrunner.services.executor import OneShotExecutor
from termrunner.storage.models import CommandOptions

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell commands")


@pytest.fixture
def executor():
    return OneShotExecutor()


class TestOneShotExecutor:
    @pytest.mark.asyncio
    async def test_echo(self, executor):
        result = await executor.run('echo "Hello World"')
        assert result.success
        assert result.exit_code == 0
        assert "Hello World" in result.stdout
        assert result.stderr == ""
        assert result.execution_time_ms >= 0

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, executor):
        result = await executor.run("exit 3")
        assert not result.success
        assert result.exit_code == 3

    @pytest.mark.asyncio
    async def test_unknown_command(self, executor):
        result = await executor.run("nonexistent-command-12345")
        assert not result.success
        assert result.stderr
        assert result.exit_code != 0

    @pytest.mark.asyncio
    async def test_stderr_does_not_mean_failure(self, executor):
        result = await executor.run('echo "Error message" >&2')
        assert result.success
        assert "Error message" in result.stderr

    @pytest.mark.asyncio
    async def test_working_directory(self, executor, tmp_path):
        result = await executor.run("pwd", CommandOptions(working_directory=str(tmp_path)))
        assert result.success
        assert result.stdout.strip().endswith(tmp_path.name)

    @pytest.mark.asyncio
    async def test_env_override(self, executor):
        result = await executor.run('echo "$TERMRUNNER_TEST_VAR"', CommandOptions(env={"TERMRUNNER_TEST_VAR": "abc"}))
        assert result.stdout.strip() == "abc"

    @pytest.mark.asyncio
    async def test_shell_override(self, executor):
        result = await executor.run("echo ok", CommandOptions(shell="/bin/sh"))
        assert result.success
        assert result.stdout.strip() == "ok"

    @pytest.mark.asyncio
    async def test_timeout_keeps_partial_output(self, executor):
        result = await executor.run("echo partial; sleep 10", CommandOptions(timeout=0.5))
        assert not result.success
        assert result.exit_code is None
        assert "partial" in result.stdout
        assert "timed out" in result.stderr.lower()
        assert result.execution_time_ms < 5000

    @pytest.mark.asyncio
    async def test_timeout_after_pipes_closed(self, executor):
        result = await executor.run("exec >/dev/null 2>&1; sleep 10", CommandOptions(timeout=0.5))
        assert not result.success
        assert result.exit_code is None
        assert "timed out" in result.stderr.lower()
        assert result.execution_time_ms < 5000

    @pytest.mark.asyncio
    async def test_missing_working_directory(self, executor, tmp_path):
        result = await executor.run("pwd", CommandOptions(working_directory=str(tmp_path / "missing")))
        assert not result.success
        assert result.exit_code is None
        assert result.stderr

    @pytest.mark.asyncio
    async def test_spawn_error_is_encoded(self, executor):
        with patch(
            "termrunner.services.executor.asyncio.create_subprocess_shell",
            side_effect=PermissionError("denied"),
        ):
            result = await executor.run("ls")
        assert not result.success
        assert "denied" in result.stderr

    @pytest.mark.asyncio
    async def test_empty_command(self, executor):
        result = await executor.run("   ")
        assert not result.success
        assert result.stderr == "Empty command"

    @pytest.mark.asyncio
    async def test_malformed_command_raises(self, executor):
        with pytest.raises(InvalidCommandError):
            await executor.run(None)  # type: ignore[arg-type]
        with pytest.raises(InvalidCommandError):
            await executor.run("echo a\x00b")

    @pytest.mark.asyncio
    async def test_non_utf8_output_is_replaced(self, executor):
        result = await executor.run("printf '\\377abc'")
        assert result.success
        assert result.stdout.endswith("abc")
