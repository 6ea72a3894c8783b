"""CLI entry point using typer."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from termrunner import __version__
from termrunner.config import CONFIG_FILE, AppConfig, load_config, save_config
from termrunner.services.interaction import BatchExecutor
from termrunner.services.runner import CommandRunner
from termrunner.storage.database import HistoryStore
from termrunner.storage.models import CommandOptions, CommandOutcome, CommandResult
from termrunner.utils.formatting import format_duration, format_result, format_summary
from termrunner.utils.system import check_working_dir

app = typer.Typer(
    name="termrunner",
    help="Run host shell commands one-shot, in batches, or inside a shell session.",
    add_completion=False,
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Also log to stderr"),
) -> None:
    """Configure logging for every command."""
    config = load_config()
    handlers: list[logging.Handler] = []
    if config.logging.file:
        log_path = Path(config.logging.file).expanduser().resolve()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_path), delay=True))
    if verbose:
        handlers.append(logging.StreamHandler())
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.logging.level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers or [logging.NullHandler()],
    )


def _options(cwd: Optional[str], timeout: Optional[float], shell: Optional[str]) -> CommandOptions:
    if cwd is not None:
        valid, resolved = check_working_dir(cwd)
        if not valid:
            console.print(f"[red]{resolved}[/red]")
            raise typer.Exit(2)
        cwd = resolved
    return CommandOptions(working_directory=cwd, timeout=timeout, shell=shell)


async def _record(config: AppConfig, outcomes: list[CommandOutcome], source: str) -> None:
    if not config.storage.enabled or not outcomes:
        return
    async with HistoryStore(config.storage.db_path) as store:
        for outcome in outcomes:
            await store.save(outcome.command, outcome.result, source=source)


@app.command()
def run(
    command: str = typer.Argument(..., help="Shell command to run"),
    cwd: Optional[str] = typer.Option(None, "--cwd", "-C", help="Working directory"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Timeout in seconds"),
    shell: Optional[str] = typer.Option(None, "--shell", help="Shell program"),
    retries: int = typer.Option(1, "--retries", "-r", help="Maximum attempts"),
    retry_delay: Optional[float] = typer.Option(None, "--retry-delay", help="Seconds between attempts"),
) -> None:
    """Run a single command in a fresh shell."""
    config = load_config()
    options = _options(cwd, timeout, shell)

    async def _run() -> CommandResult:
        runner = CommandRunner(config)
        if retries > 1:
            result = await runner.run_with_retry(command, options, max_retries=retries, retry_delay=retry_delay)
        else:
            result = await runner.run(command, options)
        await _record(config, [CommandOutcome(command, result)], "oneshot")
        return result

    result = asyncio.run(_run())
    console.print(format_result(result, command), markup=False, highlight=False)
    if not result.success:
        raise typer.Exit(1)


@app.command()
def batch(
    commands: list[str] = typer.Argument(..., help="Commands, in order"),
    parallel: bool = typer.Option(False, "--parallel", "-p", help="Run all commands concurrently"),
    cwd: Optional[str] = typer.Option(None, "--cwd", "-C", help="Working directory"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Timeout per command in seconds"),
) -> None:
    """Run several commands one-shot: in order stopping at the first failure, or in parallel."""
    config = load_config()
    options = _options(cwd, timeout, None)

    async def _run() -> list[CommandResult]:
        runner = CommandRunner(config)
        if parallel:
            results = await runner.run_parallel(commands, options)
        else:
            results = await runner.run_sequence(commands, options)
        await _record(config, [CommandOutcome(c, r) for c, r in zip(commands, results)], "oneshot")
        return results

    results = asyncio.run(_run())
    outcomes = [CommandOutcome(c, r) for c, r in zip(commands, results)]
    console.print(format_summary(outcomes, skipped=len(commands) - len(results)), markup=False, highlight=False)
    if len(results) != len(commands) or not all(r.success for r in results):
        raise typer.Exit(1)


@app.command()
def session(
    commands: list[str] = typer.Argument(..., help="Commands, in order"),
    cwd: Optional[str] = typer.Option(None, "--cwd", "-C", help="Initial working directory"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Timeout per command in seconds"),
    shell: Optional[str] = typer.Option(None, "--shell", help="Shell program"),
) -> None:
    """Run commands in one shell session, continuing past failures."""
    config = load_config()
    options = _options(cwd, None, shell)

    async def _run():
        async with CommandRunner(config, options) as runner:
            report = await BatchExecutor(runner, timeout=timeout).execute_commands_with_details(commands)
        await _record(config, report.results, "session")
        return report

    report = asyncio.run(_run())
    console.print(report.summary, markup=False, highlight=False)
    if not report.success:
        raise typer.Exit(1)


@app.command()
def which(name: str = typer.Argument(..., help="Program name")) -> None:
    """Check whether a command is available on this host."""
    exists = asyncio.run(CommandRunner(load_config()).command_exists(name))
    if exists:
        console.print(f"[green]{name}[/green] is available")
    else:
        console.print(f"[yellow]{name}[/yellow] not found")
        raise typer.Exit(1)


@app.command()
def sysinfo() -> None:
    """Show host platform, CPU and memory information."""
    info = CommandRunner(load_config()).get_system_info()

    def _mem(value: Optional[int]) -> str:
        return f"{value / (1024 ** 3):.1f} GiB" if value is not None else "n/a"

    table = Table(title="System")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("platform", info.platform)
    table.add_row("arch", info.arch)
    table.add_row("release", info.release)
    table.add_row("hostname", info.hostname)
    table.add_row("home_dir", info.home_dir)
    table.add_row("temp_dir", info.temp_dir)
    table.add_row("cpus", str(info.cpus))
    table.add_row("total_memory", _mem(info.total_memory))
    table.add_row("free_memory", _mem(info.free_memory))
    console.print(table)


@app.command()
def history(
    lines: int = typer.Option(10, "--lines", "-n", help="Number of entries"),
) -> None:
    """Show recently executed commands."""
    config = load_config()
    db_path = Path(config.storage.db_path).expanduser().resolve()
    if not db_path.exists():
        console.print("[dim]No history yet.[/dim]")
        return

    async def _load():
        async with HistoryStore(config.storage.db_path) as store:
            return await store.recent(lines)

    records = asyncio.run(_load())
    table = Table(title="History")
    table.add_column("When", style="dim")
    table.add_column("Source")
    table.add_column("Exit", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Command", style="cyan")
    for record in records:
        exit_code = "-" if record.exit_code is None else str(record.exit_code)
        style = "green" if record.exit_code == 0 else "red"
        table.add_row(
            record.created_at,
            record.source,
            f"[{style}]{exit_code}[/{style}]",
            format_duration(record.execution_time_ms or 0),
            record.command,
        )
    console.print(table)


@app.command()
def config(
    key: str = typer.Argument(None, help="Config key (e.g., shell.timeout)"),
    value: str = typer.Argument(None, help="New value"),
) -> None:
    """View or modify configuration."""
    cfg = load_config()
    section_map = {
        "shell": cfg.shell,
        "session": cfg.session,
        "retry": cfg.retry,
        "storage": cfg.storage,
        "logging": cfg.logging,
    }

    if key is None:
        # Show all config
        table = Table(title=f"Configuration ({CONFIG_FILE})")
        table.add_column("Key", style="cyan", no_wrap=True)
        table.add_column("Value", style="green")
        for section, obj in section_map.items():
            for attr, current in vars(obj).items():
                table.add_row(f"{section}.{attr}", str(current) if current != "" else "(default)")
        console.print(table)
        return

    if value is None:
        console.print("[red]Usage: termrunner config <key> <value>[/red]")
        raise typer.Exit(1)

    # Set config value
    parts = key.split(".")
    if len(parts) != 2:
        console.print("[red]Key format: section.key (e.g., shell.timeout)[/red]")
        raise typer.Exit(1)

    section, attr = parts
    if section not in section_map:
        console.print(f"[red]Unknown section: {section}[/red]")
        raise typer.Exit(1)

    obj = section_map[section]
    if not hasattr(obj, attr):
        console.print(f"[red]Unknown key: {key}[/red]")
        raise typer.Exit(1)

    # Type coercion
    current = getattr(obj, attr)
    try:
        if isinstance(current, bool):
            typed_value = value.lower() in ("true", "1", "yes")
        elif isinstance(current, int):
            typed_value = int(value)
        elif isinstance(current, float):
            typed_value = float(value)
        else:
            typed_value = value
    except ValueError:
        console.print(f"[red]Invalid value type for {key}[/red]")
        raise typer.Exit(1)

    setattr(obj, attr, typed_value)
    save_config(cfg)
    console.print(f"[green]{key} = {typed_value}[/green]")


@app.command()
def logs(
    lines: int = typer.Option(50, "--lines", "-n", help="Number of lines"),
) -> None:
    """View the log file."""
    log_path = Path(load_config().logging.file).expanduser().resolve()
    if not log_path.exists():
        console.print("[dim]No log file found.[/dim]")
        return

    content = log_path.read_text()
    log_lines = content.strip().split("\n")
    for line in log_lines[-lines:]:
        console.print(line, markup=False, highlight=False)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"termrunner v{__version__}")
    console.print(f"Python: {sys.version.split()[0]}")
    console.print(f"Config: {CONFIG_FILE}")


if __name__ == "__main__":
    app()
