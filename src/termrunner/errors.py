"""Usage errors raised to callers.

Execution outcomes (non-zero exit, timeout, spawn failure of a one-shot
command) are never raised; they are encoded in a ``CommandResult``. The
exceptions here signal programmer misuse.
"""

from __future__ import annotations


class TermRunnerError(Exception):
    """Base class for all termrunner errors."""


class InvalidCommandError(TermRunnerError, ValueError):
    """Command is not a string or cannot be passed to a shell."""


class SessionError(TermRunnerError):
    """Base class for session registry and lifecycle errors."""

    def __init__(self, session_id: str, message: str) -> None:
        self.session_id = session_id
        super().__init__(message)


class SessionExistsError(SessionError):
    def __init__(self, session_id: str) -> None:
        super().__init__(session_id, f"Session '{session_id}' already exists")


class SessionNotFoundError(SessionError):
    def __init__(self, session_id: str) -> None:
        super().__init__(session_id, f"Session '{session_id}' not found")


class SessionNotActiveError(SessionError):
    def __init__(self, session_id: str) -> None:
        super().__init__(session_id, f"Session '{session_id}' is not active")


class SessionStateError(SessionError):
    """Lifecycle operation called in the wrong state (e.g. opening twice)."""


class SessionSpawnError(SessionError):
    """The session's shell process could not be started."""
