"""Shared test fixtures."""

from __future__ import annotations

import pytest

from termrunner.config import AppConfig, LoggingConfig, RetryConfig, SessionConfig, ShellConfig, StorageConfig
from termrunner.services.runner import CommandRunner


@pytest.fixture
def app_config(tmp_path):
    """Create a test configuration."""
    return AppConfig(
        shell=ShellConfig(shell="/bin/sh", timeout=10, encoding="utf-8"),
        session=SessionConfig(close_grace_period=1.0, timeout=10),
        retry=RetryConfig(max_retries=3, retry_delay=0.0),
        storage=StorageConfig(enabled=True, db_path=str(tmp_path / "history.db")),
        logging=LoggingConfig(level="DEBUG", file=str(tmp_path / "termrunner.log")),
    )


@pytest.fixture
def runner(app_config):
    return CommandRunner(app_config)


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point config, history and log files at tmp_path."""
    import termrunner.config as cfg_module

    monkeypatch.setattr(cfg_module, "CONFIG_DIR", tmp_path)
    monkeypatch.setattr(cfg_module, "CONFIG_FILE", tmp_path / "config.toml")
    monkeypatch.setenv("TERMRUNNER_SHELL", "/bin/sh")
    monkeypatch.setenv("TERMRUNNER_DB_PATH", str(tmp_path / "history.db"))
    monkeypatch.setenv("TERMRUNNER_LOG_FILE", str(tmp_path / "termrunner.log"))
    monkeypatch.setenv("TERMRUNNER_RETRY_DELAY", "0")
    return tmp_path
