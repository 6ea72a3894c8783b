"""Text rendering for command results and batch summaries."""

from __future__ import annotations

from termrunner.storage.models import CommandOutcome, CommandResult

RULE_WIDTH = 60
MAX_COMMAND_LENGTH = 60
MAX_OUTPUT_LINES = 3
MAX_ERROR_LENGTH = 200


def truncate(text: str, max_len: int) -> str:
    """Cut ``text`` to ``max_len`` characters, marking the cut with '...'."""
    if len(text) <= max_len:
        return text
    return text[: max(0, max_len - 3)] + "..."


def first_lines(text: str, count: int = MAX_OUTPUT_LINES) -> str:
    lines = text.strip().splitlines()
    head = "\n".join(lines[:count])
    if len(lines) > count:
        head += f"\n... ({len(lines) - count} more lines)"
    return head


def format_duration(ms: int) -> str:
    """Format milliseconds to human-readable duration."""
    if ms < 1000:
        return f"{ms}ms"
    elif ms < 60000:
        return f"{ms / 1000:.1f}s"
    else:
        minutes = ms // 60000
        seconds = (ms % 60000) // 1000
        return f"{minutes}m {seconds}s"


def format_result(result: CommandResult, command: str) -> str:
    """Format a single command execution result."""
    output = result.stdout or result.stderr or "(no output)"
    icon = "OK" if result.success else f"ERR({result.exit_code})"
    return f"$ {command}\n[{icon}] {format_duration(result.execution_time_ms)}\n\n{output}"


def format_summary(outcomes: list[CommandOutcome], total_time_ms: int | None = None, skipped: int = 0) -> str:
    """Render the execution report sent back to the planner.

    ``skipped`` counts commands a fail-fast batch never ran; they are not
    part of ``outcomes``.
    """
    successful = sum(1 for o in outcomes if o.result.success)
    failed = len(outcomes) - successful
    if total_time_ms is None:
        total_time_ms = sum(o.result.execution_time_ms for o in outcomes)
    all_ok = failed == 0 and skipped == 0

    lines = [
        "=" * RULE_WIDTH,
        "📊 EXECUTION SUMMARY",
        "=" * RULE_WIDTH,
        f"📋 Total Commands: {len(outcomes) + skipped}",
        f"✅ Successful: {successful}",
        f"❌ Failed: {failed}",
    ]
    if skipped:
        lines.append(f"⏭️  Skipped: {skipped}")
    lines += [
        f"⏱️  Total Time: {format_duration(total_time_ms)}",
        f"🎯 Status: {'✅ All Successful' if all_ok else '⚠️ Some Failed'}",
        "=" * RULE_WIDTH,
    ]

    if outcomes:
        lines += ["", "📝 COMMAND DETAILS", "-" * RULE_WIDTH]
        for index, outcome in enumerate(outcomes, start=1):
            result = outcome.result
            icon = "✅" if result.success else "❌"
            exit_code = "-" if result.exit_code is None else str(result.exit_code)
            lines.append(f"{index}. {icon} {truncate(outcome.command, MAX_COMMAND_LENGTH)}")
            lines.append(f"   Time: {format_duration(result.execution_time_ms)} | Exit Code: {exit_code}")
            if result.stdout.strip():
                output = first_lines(result.stdout).replace("\n", "\n           ")
                lines.append(f"   Output: {output}")
            if not result.success and result.stderr.strip():
                lines.append(f"   Error: {truncate(result.stderr.strip(), MAX_ERROR_LENGTH)}")

    return "\n".join(lines)
