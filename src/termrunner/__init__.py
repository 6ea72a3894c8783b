"""termrunner - host shell command execution and session management."""

__version__ = "0.1.0"
