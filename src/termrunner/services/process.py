"""Low-level process helpers shared by the one-shot executor and sessions.

- Default shell detection per platform
- Incremental draining of a subprocess output stream
- Process tree termination: SIGTERM to the process group, then SIGKILL
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal
import sys
from asyncio.subprocess import Process
from typing import Callable

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096
GRACEFUL_TIMEOUT = 2.0
DEFAULT_ENCODING = "utf-8"


def default_shell() -> str:
    """Return the shell program used when no override is configured."""
    if sys.platform == "win32":
        return os.environ.get("COMSPEC", "cmd.exe")
    if sys.platform in ("linux", "darwin"):
        return os.environ.get("SHELL", "/bin/bash")
    return "/bin/sh"


def is_cmd_shell(shell: str) -> bool:
    """True for Windows ``cmd.exe``, which needs its own completion probe."""
    name = os.path.basename(shell).lower()
    return name in ("cmd", "cmd.exe")


def build_env(overrides: dict[str, str] | None) -> dict[str, str]:
    """Merge overrides over the current process environment."""
    env = dict(os.environ)
    if overrides:
        env.update(overrides)
    return env


def spawn_kwargs() -> dict:
    """Extra subprocess kwargs so the child gets its own process group."""
    if sys.platform == "win32":
        import subprocess

        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


async def drain_stream(
    stream: asyncio.StreamReader,
    sink: list[str],
    encoding: str = DEFAULT_ENCODING,
    on_data: Callable[[], None] | None = None,
) -> None:
    """Read ``stream`` until EOF, appending decoded chunks to ``sink``.

    Decoding is incremental so multi-byte characters split across reads are
    not mangled. ``on_data`` is called after every appended chunk.
    """
    decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        text = decoder.decode(chunk)
        if text:
            sink.append(text)
            if on_data is not None:
                on_data()
    tail = decoder.decode(b"", final=True)
    if tail:
        sink.append(tail)
        if on_data is not None:
            on_data()


async def terminate_process_tree(process: Process, graceful_timeout: float = GRACEFUL_TIMEOUT) -> None:
    """Terminate a process and its children, escalating to a forced kill.

    Children are spawned as process group leaders (see ``spawn_kwargs``), so
    the group id equals the pid even after the leader itself has exited.
    """
    if process.returncode is not None:
        # Leader is gone; background members may still hold the pipes open.
        if sys.platform != "win32":
            _signal_group(process, signal.SIGKILL)
        return

    if sys.platform == "win32":
        try:
            process.terminate()
        except ProcessLookupError:
            return
    else:
        _signal_group(process, signal.SIGTERM)

    try:
        await asyncio.wait_for(process.wait(), timeout=graceful_timeout)
        return
    except asyncio.TimeoutError:
        pass

    if sys.platform == "win32":
        try:
            process.kill()
        except ProcessLookupError:
            pass
    else:
        _signal_group(process, signal.SIGKILL)

    await process.wait()


def _signal_group(process: Process, sig: int) -> None:
    try:
        os.killpg(process.pid, sig)
        logger.debug("Sent %s to process group %d", signal.Signals(sig).name, process.pid)
    except ProcessLookupError:
        pass
    except OSError:
        if process.returncode is None:
            try:
                process.send_signal(sig)
            except ProcessLookupError:
                pass
