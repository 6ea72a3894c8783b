"""Tests for configuration module."""

from __future__ import annotations

import os

import pytest

from termrunner.config import (
    AppConfig,
    RetryConfig,
    ShellConfig,
    load_config,
    save_config,
)


@pytest.fixture
def config_paths(tmp_path, monkeypatch):
    import termrunner.config as cfg_module

    config_file = tmp_path / "config.toml"
    monkeypatch.setattr(cfg_module, "CONFIG_FILE", config_file)
    monkeypatch.setattr(cfg_module, "CONFIG_DIR", tmp_path)
    for name in [k for k in os.environ if k.startswith("TERMRUNNER_")]:
        monkeypatch.delenv(name)
    return config_file


class TestAppConfig:
    def test_defaults(self):
        config = AppConfig()
        assert config.shell.shell == ""
        assert config.shell.timeout == 30
        assert config.shell.encoding == "utf-8"
        assert config.session.close_grace_period == 3.0
        assert config.retry.max_retries == 3
        assert config.retry.retry_delay == 1.0
        assert config.storage.enabled is True

    def test_load_without_file(self, config_paths):
        config = load_config()
        assert config == AppConfig()

    def test_save_and_load(self, config_paths):
        config = AppConfig(
            shell=ShellConfig(shell="/bin/zsh", timeout=120, working_directory="/tmp/test"),
            retry=RetryConfig(max_retries=5, retry_delay=0.5),
        )

        save_config(config)
        assert config_paths.exists()
        assert oct(config_paths.stat().st_mode & 0o777) == oct(0o600)

        loaded = load_config()
        assert loaded.shell.shell == "/bin/zsh"
        assert loaded.shell.timeout == 120
        assert loaded.shell.working_directory == "/tmp/test"
        assert loaded.retry.max_retries == 5
        assert loaded.retry.retry_delay == 0.5

    def test_env_overrides(self, config_paths, monkeypatch):
        save_config(AppConfig(shell=ShellConfig(timeout=120)))
        monkeypatch.setenv("TERMRUNNER_TIMEOUT", "7")
        monkeypatch.setenv("TERMRUNNER_SHELL", "/bin/dash")
        monkeypatch.setenv("TERMRUNNER_MAX_RETRIES", "9")
        monkeypatch.setenv("TERMRUNNER_RETRY_DELAY", "0.1")

        config = load_config()
        assert config.shell.timeout == 7
        assert config.shell.shell == "/bin/dash"
        assert config.retry.max_retries == 9
        assert config.retry.retry_delay == 0.1

    def test_fractional_timeouts(self, config_paths, monkeypatch):
        config_paths.write_text("[shell]\ntimeout = 20\n\n[session]\ntimeout = 2.5\n")
        config = load_config()
        assert isinstance(config.shell.timeout, float)
        assert config.session.timeout == 2.5

        monkeypatch.setenv("TERMRUNNER_TIMEOUT", "1.5")
        assert load_config().shell.timeout == 1.5

    def test_partial_file(self, config_paths):
        config_paths.write_text('[retry]\nmax_retries = 1\n')
        config = load_config()
        assert config.retry.max_retries == 1
        assert config.shell.timeout == 30
