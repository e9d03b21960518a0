"""
Configuration loader.

Loads the dashboard's own YAML settings and provides unified access.
Supports:
- Example file with an optional local override, deep-merged
- Environment variable substitution
- Default values
"""

import copy
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).parent.parent.parent.parent / "config"
CONFIG_DIR_ENV = "RUNNER_DASHBOARD_CONFIG_DIR"

CONFIG_FILES = ["dashboard.example.yaml", "dashboard.yaml"]

DEFAULTS: dict[str, Any] = {
    "admin": {
        "password": "",
        "session_secret": "",
        "session_expiry_hours": 24,
    },
    "runner": {
        "config_path": "/etc/gitlab-runner/config.toml",
        "service_name": "gitlab-runner",
        "binary": "gitlab-runner",
        "log_file": "/var/log/gitlab-runner.log",
    },
    "refresh": {
        "history_seconds": 30,
        "system_seconds": 5,
        "history_limit": 50,
    },
    "logging": {
        "level": "INFO",
    },
}


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively substitute environment variables in config."""
    if isinstance(obj, str):
        if obj.startswith("${") and "}" in obj:
            var_part = obj[2:obj.index("}")]

            if ":-" in var_part:
                var_name, default = var_part.split(":-", 1)
            else:
                var_name, default = var_part, ""

            value = os.environ.get(var_name, default)

            if obj == f"${{{var_part}}}":
                return value

            return obj.replace(f"${{{var_part}}}", value)

        return obj

    elif isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}

    elif isinstance(obj, list):
        return [_substitute_env_vars(item) for item in obj]

    return obj


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a single YAML file."""
    if not path.exists():
        logger.warning(f"Config file not found: {path}")
        return {}

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return _substitute_env_vars(data)


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries. Override takes precedence."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


@lru_cache(maxsize=1)
def get_config(config_dir: str | None = None) -> dict[str, Any]:
    """Load defaults and merge all config files over them."""
    base_dir = Path(config_dir or os.environ.get(CONFIG_DIR_ENV) or CONFIG_DIR)

    config: dict[str, Any] = copy.deepcopy(DEFAULTS)

    for filename in CONFIG_FILES:
        file_path = base_dir / filename
        if file_path.exists():
            file_config = load_yaml(file_path)
            config = deep_merge(config, file_config)
            logger.debug(f"Loaded config: {filename}")

    return config


def reload_config() -> dict[str, Any]:
    """Force reload config (clears cache)."""
    get_config.cache_clear()
    return get_config()


def get_section(name: str) -> dict[str, Any]:
    """Get one top-level config section (admin, runner, refresh, logging)."""
    config = get_config()
    return config.get(name, {})
