"""Host system information and checks."""

from __future__ import annotations

import os
import platform
import socket
import sys
import tempfile
from pathlib import Path

from termrunner.storage.models import SystemInfo


def _memory_totals() -> tuple[int | None, int | None]:
    """Return (total, free) physical memory in bytes, if the host exposes them."""
    try:
        page_size = os.sysconf("SC_PAGE_SIZE")
        total = os.sysconf("SC_PHYS_PAGES") * page_size
    except (AttributeError, ValueError, OSError):
        return None, None
    try:
        free = os.sysconf("SC_AVPHYS_PAGES") * page_size
    except (ValueError, OSError):
        # Not available on macOS.
        free = None
    return total, free


def get_system_info() -> SystemInfo:
    """Snapshot of the host platform, CPU count and memory."""
    total, free = _memory_totals()
    return SystemInfo(
        platform=sys.platform,
        arch=platform.machine(),
        release=platform.release(),
        hostname=socket.gethostname(),
        home_dir=str(Path.home()),
        temp_dir=tempfile.gettempdir(),
        cpus=os.cpu_count() or 1,
        total_memory=total,
        free_memory=free,
    )


def check_working_dir(path: str) -> tuple[bool, str]:
    """Validate a working directory path."""
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists():
        return False, f"Directory not found: {resolved}"
    if not resolved.is_dir():
        return False, f"Not a directory: {resolved}"
    return True, str(resolved)
