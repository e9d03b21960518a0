"""Tests for the command-line entry point."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from src.cli import build_parser, configure, main
from src.core.config.loader import CONFIG_DIR_ENV, get_config
from src.core.config.runner_config import get_runner_config_manager, set_runner_config_manager
from src.core.services.runner import get_runner_service, set_runner_service


@pytest.fixture(autouse=True)
def _reset_globals():
    """Reset cached settings and shared instances around each test."""
    get_config.cache_clear()
    yield
    get_config.cache_clear()
    set_runner_service(None)
    set_runner_config_manager(None)


class TestParser:
    """Tests for argument parsing."""

    def test_defaults(self) -> None:
        args = build_parser().parse_args([])

        assert args.config is None
        assert args.debug is False
        assert args.host == "127.0.0.1"
        assert args.port == 8080
        assert args.settings_dir is None

    def test_all_flags(self) -> None:
        args = build_parser().parse_args(
            ["--config", "/srv/c.toml", "--debug", "--host", "0.0.0.0", "--port", "9000",
             "--settings-dir", "/etc/dash"]
        )

        assert args.config == "/srv/c.toml"
        assert args.debug is True
        assert args.host == "0.0.0.0"
        assert args.port == 9000
        assert args.settings_dir == "/etc/dash"


class TestConfigure:
    """Tests for startup configuration."""

    def test_installs_service_and_manager(self, tmp_path: Path) -> None:
        config_path = tmp_path / "config.toml"
        args = build_parser().parse_args(
            ["--config", str(config_path), "--debug", "--settings-dir", str(tmp_path)]
        )

        with patch.dict(os.environ, {}):
            service = configure(args)
            assert os.environ[CONFIG_DIR_ENV] == str(tmp_path)

        assert service.config_path == str(config_path)
        assert service.debug_mode is True
        assert get_runner_service() is service
        assert get_runner_config_manager().path == config_path

    def test_settings_dir_values_used(self, tmp_path: Path) -> None:
        (tmp_path / "dashboard.yaml").write_text(
            "runner:\n"
            "  service_name: custom-runner\n"
            "  config_path: /srv/from-settings.toml\n"
        )
        args = build_parser().parse_args(["--settings-dir", str(tmp_path)])

        with patch.dict(os.environ, {}):
            service = configure(args)

        assert service.service_name == "custom-runner"
        assert service.config_path == "/srv/from-settings.toml"


class TestMain:
    """Tests for exit codes."""

    def test_help_exits_zero(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--help"])

        assert exc_info.value.code == 0

    def test_normal_exit(self, tmp_path: Path) -> None:
        with patch.dict(os.environ, {}), patch("src.cli.uvicorn.run") as mock_run:
            with pytest.raises(SystemExit) as exc_info:
                main(["--settings-dir", str(tmp_path), "--port", "9001"])

        assert exc_info.value.code == 0
        assert mock_run.call_args.kwargs["port"] == 9001

    def test_bad_settings_exit_nonzero(self, tmp_path: Path) -> None:
        (tmp_path / "dashboard.yaml").write_text("runner: [unclosed\n")

        with patch.dict(os.environ, {}), patch("src.cli.uvicorn.run") as mock_run:
            with pytest.raises(SystemExit) as exc_info:
                main(["--settings-dir", str(tmp_path)])

        assert exc_info.value.code == 1
        mock_run.assert_not_called()

    def test_server_crash_exit_nonzero(self, tmp_path: Path) -> None:
        with patch.dict(os.environ, {}), \
                patch("src.cli.uvicorn.run", side_effect=OSError("address in use")):
            with pytest.raises(SystemExit) as exc_info:
                main(["--settings-dir", str(tmp_path)])

        assert exc_info.value.code == 1
