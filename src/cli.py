#!/usr/bin/env python3
"""
Command-line entry point for the runner dashboard.

Usage:
    runner-dashboard [--config PATH] [--debug] [--host HOST] [--port PORT]
                     [--settings-dir DIR]
"""

import argparse
import logging
import os
import sys
from typing import NoReturn

import uvicorn
import yaml

from src.api.main import create_app
from src.core.config.loader import CONFIG_DIR_ENV, get_section, reload_config
from src.core.config.runner_config import (
    RunnerConfigManager,
    resolve_config_path,
    set_runner_config_manager,
)
from src.core.services.runner import (
    DEFAULT_BINARY,
    DEFAULT_LOG_FILE,
    DEFAULT_SERVICE_NAME,
    RunnerService,
    set_runner_service,
)

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="runner-dashboard",
        description="Web dashboard for a local GitLab Runner agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Pages (under /admin):
  Runners   Registered runners and their verification status
  Logs      Recent and live agent log lines
  Config    Edit global and per-runner settings in config.toml
  System    Service state, resource usage, restart
  History   Recent jobs reconstructed from the agent log
        """,
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        default=None,
        help="Path to the runner config.toml (default: /etc/gitlab-runner/config.toml)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging and verbose journal output",
    )
    parser.add_argument(
        "--host",
        default=DEFAULT_HOST,
        help=f"Address to listen on (default: {DEFAULT_HOST})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help=f"Port to listen on (default: {DEFAULT_PORT})",
    )
    parser.add_argument(
        "--settings-dir",
        metavar="DIR",
        default=None,
        help="Directory holding dashboard.yaml (default: ./config)",
    )
    return parser


def configure(args: argparse.Namespace) -> RunnerService:
    """
    Load dashboard settings and install the shared service instances.

    Args:
        args: Parsed command-line arguments.

    Returns:
        The runner service the app will use.

    Raises:
        yaml.YAMLError: If the dashboard settings cannot be parsed.
    """
    if args.settings_dir:
        os.environ[CONFIG_DIR_ENV] = args.settings_dir
    reload_config()

    level = "DEBUG" if args.debug else str(get_section("logging").get("level", "INFO"))
    logging.getLogger().setLevel(level.upper())

    runner_config = get_section("runner")
    config_path = resolve_config_path(args.config or runner_config.get("config_path"))
    logger.info(f"Using runner config: {config_path}")

    service = RunnerService(
        config_path=str(config_path),
        debug=args.debug,
        service_name=runner_config.get("service_name", DEFAULT_SERVICE_NAME),
        binary=runner_config.get("binary", DEFAULT_BINARY),
        log_file=runner_config.get("log_file", DEFAULT_LOG_FILE),
    )
    set_runner_service(service)
    set_runner_config_manager(RunnerConfigManager(config_path))
    return service


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        configure(args)

        uvicorn.run(create_app(), host=args.host, port=args.port, log_level="info")
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
