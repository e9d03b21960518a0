"""
Runner agent configuration (config.toml) management.

Loads the agent's TOML config into typed records, applies validated
edits, and writes it back atomically with a .bak copy of the previous
file. Keys this module does not model are kept and written back as-is.
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w

from src.core.exceptions import ConfigError, ConfigValidationError, RunnerNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/gitlab-runner/config.toml"
USER_CONFIG_PATH = "~/.gitlab-runner/config.toml"

VALID_LOG_LEVELS = ["debug", "info", "warn", "error", "fatal", "panic"]
DOCKER_EXECUTORS = ["docker", "docker+machine", "docker-ssh", "docker-ssh+machine"]

_GLOBAL_KEYS = ("concurrent", "check_interval", "log_level", "log_format", "session_server")
_RUNNER_KEYS = (
    "name",
    "url",
    "token",
    "executor",
    "limit",
    "max_builds",
    "request_concurrency",
    "output_limit",
    "tag_list",
    "run_untagged",
    "locked",
    "docker",
    "kubernetes",
)


@dataclass
class RunnerSettings:
    """One [[runners]] block."""

    name: str = ""
    url: str = ""
    token: str = ""
    executor: str = ""
    limit: int = 0
    max_builds: int = 0
    request_concurrency: int = 0
    output_limit: int = 0
    tag_list: list[str] = field(default_factory=list)
    run_untagged: bool = False
    locked: bool = False
    docker: dict[str, Any] | None = None
    kubernetes: dict[str, Any] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunnerSettings":
        known = {key: data[key] for key in _RUNNER_KEYS if key in data}
        extra = {key: value for key, value in data.items() if key not in _RUNNER_KEYS}
        return cls(**known, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "url": self.url,
            "token": self.token,
            "executor": self.executor,
        }
        # Zero/empty values are omitted so untouched files round-trip cleanly
        for key in ("limit", "max_builds", "request_concurrency", "output_limit"):
            if getattr(self, key):
                data[key] = getattr(self, key)
        if self.tag_list:
            data["tag_list"] = list(self.tag_list)
        if self.run_untagged:
            data["run_untagged"] = True
        if self.locked:
            data["locked"] = True
        data.update(self.extra)
        if self.docker is not None:
            data["docker"] = self.docker
        if self.kubernetes is not None:
            data["kubernetes"] = self.kubernetes
        return data


@dataclass
class RunnerAgentConfig:
    """Top level of config.toml."""

    concurrent: int = 1
    check_interval: int = 0
    log_level: str = ""
    log_format: str = ""
    session_server: dict[str, Any] | None = None
    runners: list[RunnerSettings] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunnerAgentConfig":
        known = {key: data[key] for key in _GLOBAL_KEYS if key in data}
        runners = [RunnerSettings.from_dict(r) for r in data.get("runners", [])]
        extra = {
            key: value
            for key, value in data.items()
            if key not in _GLOBAL_KEYS and key != "runners"
        }
        return cls(**known, runners=runners, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"concurrent": self.concurrent}
        if self.check_interval:
            data["check_interval"] = self.check_interval
        if self.log_level:
            data["log_level"] = self.log_level
        if self.log_format:
            data["log_format"] = self.log_format
        data.update(self.extra)
        if self.session_server is not None:
            data["session_server"] = self.session_server
        data["runners"] = [r.to_dict() for r in self.runners]
        return data


def resolve_config_path(path: str | None = None) -> Path:
    """
    Pick the agent config file to use.

    An explicit path is used as given. Otherwise the system-wide file is
    used, or the per-user file when only that one exists.
    """
    if path and path != DEFAULT_CONFIG_PATH:
        return Path(path)

    default = Path(DEFAULT_CONFIG_PATH)
    if not default.exists():
        user_path = Path(USER_CONFIG_PATH).expanduser()
        if user_path.exists():
            logger.info(f"Using config from: {user_path}")
            return user_path
    return default


class RunnerConfigManager:
    """
    Loads, edits, validates and saves the agent's config.toml.

    Every update method validates its input before touching the loaded
    config, so a rejected update leaves the config unchanged.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path else Path(DEFAULT_CONFIG_PATH)
        self._config: RunnerAgentConfig | None = None

    @property
    def config(self) -> RunnerAgentConfig:
        """
        The loaded config.

        Raises:
            ConfigError: If load() has not succeeded yet.
        """
        if self._config is None:
            raise ConfigError("No config loaded")
        return self._config

    @property
    def is_loaded(self) -> bool:
        return self._config is not None

    def load(self) -> RunnerAgentConfig:
        """
        Read and parse the config file.

        Raises:
            ConfigError: If the file cannot be read or is not valid TOML.
        """
        try:
            with open(self.path, "rb") as f:
                data = tomllib.load(f)
        except OSError as e:
            raise ConfigError(f"Failed to read config file: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Failed to parse TOML config: {e}") from e

        self._config = RunnerAgentConfig.from_dict(data)
        logger.debug(f"Loaded runner config: {self.path} ({len(self._config.runners)} runners)")
        return self._config

    def save(self) -> None:
        """
        Write the config back to disk.

        Writes a temp file first, moves the current file to .bak, then
        renames the temp file into place. On failure the backup is
        restored.

        Raises:
            ConfigError: If nothing is loaded or the file cannot be written.
        """
        payload = tomli_w.dumps(self.config.to_dict())

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        backup_path = self.path.with_name(self.path.name + ".bak")

        try:
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
        except OSError as e:
            raise ConfigError(f"Failed to write config file: {e}") from e

        had_original = self.path.exists()
        if had_original:
            try:
                os.replace(self.path, backup_path)
            except OSError as e:
                tmp_path.unlink(missing_ok=True)
                raise ConfigError(f"Failed to backup config file: {e}") from e

        try:
            os.replace(tmp_path, self.path)
        except OSError as e:
            if had_original:
                os.replace(backup_path, self.path)
            tmp_path.unlink(missing_ok=True)
            raise ConfigError(f"Failed to replace config file: {e}") from e

        logger.info(f"Saved runner config: {self.path}")

    def get_runner(self, name: str) -> RunnerSettings:
        """
        Get a runner block by name.

        Raises:
            ConfigError: If no config is loaded.
            RunnerNotFoundError: If no runner has that name.
        """
        for runner in self.config.runners:
            if runner.name == name:
                return runner
        raise RunnerNotFoundError(f"Runner {name} not found")

    def update_concurrency(self, concurrent: int) -> None:
        config = self.config
        if concurrent < 1:
            raise ConfigValidationError("concurrent must be at least 1")
        config.concurrent = concurrent

    def update_check_interval(self, interval: int) -> None:
        config = self.config
        if interval < 0:
            raise ConfigValidationError("check_interval must be non-negative")
        config.check_interval = interval

    def update_log_level(self, level: str) -> None:
        config = self.config
        level = level.lower()
        if level not in VALID_LOG_LEVELS:
            raise ConfigValidationError(
                f"Invalid log level '{level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
            )
        config.log_level = level

    def update_global(
        self,
        concurrent: int | None = None,
        check_interval: int | None = None,
        log_level: str | None = None,
    ) -> None:
        """
        Apply several global settings at once.

        All values are validated before any is applied.

        Raises:
            ConfigValidationError: If any value is invalid.
        """
        config = self.config
        if concurrent is not None and concurrent < 1:
            raise ConfigValidationError("concurrent must be at least 1")
        if check_interval is not None and check_interval < 0:
            raise ConfigValidationError("check_interval must be non-negative")
        if log_level is not None and log_level.lower() not in VALID_LOG_LEVELS:
            raise ConfigValidationError(
                f"Invalid log level '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
            )

        if concurrent is not None:
            config.concurrent = concurrent
        if check_interval is not None:
            config.check_interval = check_interval
        if log_level is not None:
            config.log_level = log_level.lower()

    def _update_runner_count(self, name: str, key: str, value: int) -> None:
        runner = self.get_runner(name)
        if value < 0:
            raise ConfigValidationError(f"{key} must be non-negative")
        setattr(runner, key, value)

    def update_runner_limit(self, name: str, limit: int) -> None:
        self._update_runner_count(name, "limit", limit)

    def update_runner_max_builds(self, name: str, max_builds: int) -> None:
        self._update_runner_count(name, "max_builds", max_builds)

    def update_runner_request_concurrency(self, name: str, concurrency: int) -> None:
        self._update_runner_count(name, "request_concurrency", concurrency)

    def update_runner_output_limit(self, name: str, limit: int) -> None:
        self._update_runner_count(name, "output_limit", limit)

    def update_runner_tags(self, name: str, tags: list[str]) -> None:
        runner = self.get_runner(name)
        runner.tag_list = [tag.strip() for tag in tags if tag.strip()]

    def update_runner_untagged(self, name: str, run_untagged: bool) -> None:
        self.get_runner(name).run_untagged = run_untagged

    def update_runner_locked(self, name: str, locked: bool) -> None:
        self.get_runner(name).locked = locked

    def update_runner(
        self,
        name: str,
        limit: int | None = None,
        max_builds: int | None = None,
        request_concurrency: int | None = None,
        output_limit: int | None = None,
        tags: list[str] | None = None,
        run_untagged: bool | None = None,
        locked: bool | None = None,
    ) -> RunnerSettings:
        """
        Apply several settings to one runner at once.

        All values are validated before any is applied.

        Raises:
            RunnerNotFoundError: If no runner has that name.
            ConfigValidationError: If any value is invalid.
        """
        runner = self.get_runner(name)
        counts = {
            "limit": limit,
            "max_builds": max_builds,
            "request_concurrency": request_concurrency,
            "output_limit": output_limit,
        }
        for key, value in counts.items():
            if value is not None and value < 0:
                raise ConfigValidationError(f"{key} must be non-negative")

        for key, value in counts.items():
            if value is not None:
                setattr(runner, key, value)
        if tags is not None:
            runner.tag_list = [tag.strip() for tag in tags if tag.strip()]
        if run_untagged is not None:
            runner.run_untagged = run_untagged
        if locked is not None:
            runner.locked = locked
        return runner

    def validate(self) -> None:
        """
        Check the whole config for values the agent would reject.

        Raises:
            ConfigError: If no config is loaded.
            ConfigValidationError: On the first problem found.
        """
        config = self.config
        if config.concurrent < 1:
            raise ConfigValidationError("concurrent must be at least 1")

        for i, runner in enumerate(config.runners):
            if not runner.name:
                raise ConfigValidationError(f"runner {i} has no name")
            if not runner.url:
                raise ConfigValidationError(f"runner {runner.name} has no URL")
            if not runner.token:
                raise ConfigValidationError(f"runner {runner.name} has no token")
            if not runner.executor:
                raise ConfigValidationError(f"runner {runner.name} has no executor")

            if runner.executor in DOCKER_EXECUTORS:
                if not runner.docker or not runner.docker.get("image"):
                    raise ConfigValidationError(
                        f"runner {runner.name}: docker executor requires image"
                    )
            elif runner.executor == "kubernetes":
                if not runner.kubernetes or not runner.kubernetes.get("image"):
                    raise ConfigValidationError(
                        f"runner {runner.name}: kubernetes executor requires image"
                    )


# Singleton instance for convenience
_config_manager: RunnerConfigManager | None = None


def get_runner_config_manager() -> RunnerConfigManager:
    """Get the global config manager, pointed at the resolved config path."""
    global _config_manager
    if _config_manager is None:
        _config_manager = RunnerConfigManager(resolve_config_path())
    return _config_manager


def set_runner_config_manager(manager: RunnerConfigManager | None) -> None:
    """Replace the global config manager (used at startup and in tests)."""
    global _config_manager
    _config_manager = manager
