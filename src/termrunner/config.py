"""Configuration management using TOML + environment variables."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

CONFIG_DIR = Path.home() / ".termrunner"
CONFIG_FILE = CONFIG_DIR / "config.toml"


@dataclass
class ShellConfig:
    shell: str = ""  # empty = detect from platform
    timeout: float = 30.0  # seconds, 0 = no limit
    encoding: str = "utf-8"
    working_directory: str = ""


@dataclass
class SessionConfig:
    close_grace_period: float = 3.0
    timeout: float = 30.0


@dataclass
class RetryConfig:
    max_retries: int = 3
    retry_delay: float = 1.0


@dataclass
class StorageConfig:
    enabled: bool = True
    db_path: str = "~/.termrunner/history.db"


@dataclass
class LoggingConfig:
    level: str = "WARNING"
    file: str = "~/.termrunner/termrunner.log"


@dataclass
class AppConfig:
    shell: ShellConfig = field(default_factory=ShellConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def ensure_config_dir() -> None:
    """Create config directory with secure permissions."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    os.chmod(CONFIG_DIR, 0o700)


def load_config() -> AppConfig:
    """Load configuration from TOML file with env var overrides."""
    config = AppConfig()

    if CONFIG_FILE.exists():
        with open(CONFIG_FILE, "rb") as f:
            data = tomllib.load(f)

        shell = data.get("shell", {})
        config.shell.shell = shell.get("shell", config.shell.shell)
        config.shell.timeout = float(shell.get("timeout", config.shell.timeout))
        config.shell.encoding = shell.get("encoding", config.shell.encoding)
        config.shell.working_directory = shell.get("working_directory", config.shell.working_directory)

        session = data.get("session", {})
        config.session.close_grace_period = session.get("close_grace_period", config.session.close_grace_period)
        config.session.timeout = float(session.get("timeout", config.session.timeout))

        retry = data.get("retry", {})
        config.retry.max_retries = retry.get("max_retries", config.retry.max_retries)
        config.retry.retry_delay = retry.get("retry_delay", config.retry.retry_delay)

        storage = data.get("storage", {})
        config.storage.enabled = storage.get("enabled", config.storage.enabled)
        config.storage.db_path = storage.get("db_path", config.storage.db_path)

        logging_cfg = data.get("logging", {})
        config.logging.level = logging_cfg.get("level", config.logging.level)
        config.logging.file = logging_cfg.get("file", config.logging.file)

    # Environment variable overrides
    if env_shell := os.environ.get("TERMRUNNER_SHELL"):
        config.shell.shell = env_shell
    if env_timeout := os.environ.get("TERMRUNNER_TIMEOUT"):
        config.shell.timeout = float(env_timeout)
    if env_encoding := os.environ.get("TERMRUNNER_ENCODING"):
        config.shell.encoding = env_encoding
    if env_workdir := os.environ.get("TERMRUNNER_WORKDIR"):
        config.shell.working_directory = env_workdir
    if env_grace := os.environ.get("TERMRUNNER_CLOSE_GRACE"):
        config.session.close_grace_period = float(env_grace)
    if env_retries := os.environ.get("TERMRUNNER_MAX_RETRIES"):
        config.retry.max_retries = int(env_retries)
    if env_delay := os.environ.get("TERMRUNNER_RETRY_DELAY"):
        config.retry.retry_delay = float(env_delay)
    if env_db := os.environ.get("TERMRUNNER_DB_PATH"):
        config.storage.db_path = env_db
    if env_log_level := os.environ.get("TERMRUNNER_LOG_LEVEL"):
        config.logging.level = env_log_level
    if env_log_file := os.environ.get("TERMRUNNER_LOG_FILE"):
        config.logging.file = env_log_file

    return config


def save_config(config: AppConfig) -> None:
    """Save configuration to TOML file."""
    ensure_config_dir()

    data = {
        "shell": {
            "shell": config.shell.shell,
            "timeout": config.shell.timeout,
            "encoding": config.shell.encoding,
            "working_directory": config.shell.working_directory,
        },
        "session": {
            "close_grace_period": config.session.close_grace_period,
            "timeout": config.session.timeout,
        },
        "retry": {
            "max_retries": config.retry.max_retries,
            "retry_delay": config.retry.retry_delay,
        },
        "storage": {
            "enabled": config.storage.enabled,
            "db_path": config.storage.db_path,
        },
        "logging": {
            "level": config.logging.level,
            "file": config.logging.file,
        },
    }

    with open(CONFIG_FILE, "wb") as f:
        tomli_w.dump(data, f)

    os.chmod(CONFIG_FILE, 0o600)
