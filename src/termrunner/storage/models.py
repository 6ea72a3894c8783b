"""Data models for termrunner."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one command invocation (one-shot or in-session)."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    execution_time_ms: int = 0

    @classmethod
    def failure(cls, stderr: str, stdout: str = "", exit_code: int | None = None, execution_time_ms: int = 0) -> CommandResult:
        return cls(
            success=False,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            execution_time_ms=execution_time_ms,
        )


@dataclass(frozen=True)
class CommandOptions:
    """Spawn options. ``None`` means "use the runner or process default"."""

    working_directory: str | None = None
    env: dict[str, str] | None = None
    timeout: float | None = None  # seconds
    shell: str | None = None
    encoding: str | None = None

    def merged_with(self, other: CommandOptions | None) -> CommandOptions:
        """Return a copy where every non-None field of ``other`` wins."""
        if other is None:
            return self
        overrides = {f.name: getattr(other, f.name) for f in fields(other) if getattr(other, f.name) is not None}
        return replace(self, **overrides)


@dataclass(frozen=True)
class CommandOutcome:
    """A command paired with its result, as listed in batch reports."""

    command: str
    result: CommandResult


@dataclass
class BatchReport:
    """Aggregate of a continue-on-error batch."""

    success: bool = True
    total_commands: int = 0
    successful_commands: int = 0
    failed_commands: int = 0
    total_time_ms: int = 0
    results: list[CommandOutcome] = field(default_factory=list)
    summary: str = ""


@dataclass(frozen=True)
class SystemInfo:
    """Read-only snapshot of the host."""

    platform: str
    arch: str
    release: str
    hostname: str
    home_dir: str
    temp_dir: str
    cpus: int
    total_memory: int | None
    free_memory: int | None


@dataclass
class CommandRecord:
    """A stored command history entry."""

    id: int = 0
    command: str = ""
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    execution_time_ms: int = 0
    source: str = "oneshot"
    created_at: str = ""
