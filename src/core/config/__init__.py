"""Config module: dashboard settings and the runner agent's config.toml."""

from src.core.config.loader import (
    get_config,
    get_section,
    reload_config,
)
from src.core.config.runner_config import (
    RunnerAgentConfig,
    RunnerConfigManager,
    RunnerSettings,
    get_runner_config_manager,
    resolve_config_path,
    set_runner_config_manager,
)

__all__ = [
    "get_config",
    "get_section",
    "reload_config",
    "RunnerAgentConfig",
    "RunnerConfigManager",
    "RunnerSettings",
    "get_runner_config_manager",
    "resolve_config_path",
    "set_runner_config_manager",
]
