"""
Tests for RunnerService.

System commands are replaced with mocks; each test checks how the
service interprets their output and failures.
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from src.core.exceptions import RestartError, RetrievalError, RunnerNotFoundError
from src.core.services.runner import (
    RunnerService,
    extract_property_value,
    get_runner_service,
    parse_process_usage,
    set_runner_service,
)
from src.core.utils.process import CommandError, CommandResult

LISTING = (
    "Listing configured runners                          ConfigFile=/etc/gitlab-runner/config.toml\n"
    "Name=ci-runner-1 Token=abcdef1234567890 Executor=docker\n"
    "Name=ci-runner-2 Token=0987654321fedcba Executor=shell\n"
)


def _ok(stdout: str = "", stderr: str = "") -> CommandResult:
    return CommandResult(returncode=0, stdout=stdout, stderr=stderr)


def _fail(stderr: str = "failed", returncode: int = 1) -> CommandResult:
    return CommandResult(returncode=returncode, stdout="", stderr=stderr)


class TestListRunners:
    """Tests for list_runners."""

    @pytest.mark.asyncio
    async def test_parses_listing(self) -> None:
        """Runners from the listing are returned in order."""
        service = RunnerService(config_path="/tmp/config.toml")
        with patch("src.core.services.runner.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = _ok(stderr=LISTING)
            runners = await service.list_runners()

        mock_run.assert_awaited_once_with("gitlab-runner", "list", "--config", "/tmp/config.toml")
        assert [r.name for r in runners] == ["ci-runner-1", "ci-runner-2"]
        assert runners[0].id == "abcdef12"
        assert runners[1].executor == "shell"

    @pytest.mark.asyncio
    async def test_listing_on_stdout(self) -> None:
        """Listings printed on stdout are parsed too."""
        service = RunnerService()
        with patch("src.core.services.runner.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = _ok(stdout=LISTING)
            runners = await service.list_runners()

        assert len(runners) == 2

    @pytest.mark.asyncio
    async def test_failure_raises(self) -> None:
        """A failing listing command raises RetrievalError."""
        service = RunnerService()
        with patch("src.core.services.runner.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = _fail("permission denied")
            with pytest.raises(RetrievalError, match="permission denied"):
                await service.list_runners()


class TestGetRunnerStatus:
    """Tests for get_runner_status."""

    @pytest.mark.asyncio
    async def test_alive_runner(self) -> None:
        """Verify output containing "is alive" marks the runner online."""
        service = RunnerService(config_path="/tmp/config.toml")
        with patch("src.core.services.runner.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.side_effect = [
                _ok(stderr=LISTING),
                _ok(stderr="Verifying runner... is alive                        runner=abcdef12"),
            ]
            runner = await service.get_runner_status("ci-runner-1")

        assert runner.status == "active"
        assert runner.online is True
        mock_run.assert_awaited_with(
            "gitlab-runner", "verify", "--name", "ci-runner-1", "--config", "/tmp/config.toml"
        )

    @pytest.mark.asyncio
    async def test_dead_runner(self) -> None:
        """Anything else marks the runner inactive."""
        service = RunnerService()
        with patch("src.core.services.runner.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.side_effect = [
                _ok(stderr=LISTING),
                _fail("Verifying runner... is removed"),
            ]
            runner = await service.get_runner_status("ci-runner-2")

        assert runner.status == "inactive"
        assert runner.online is False

    @pytest.mark.asyncio
    async def test_unknown_runner(self) -> None:
        """Unknown names raise RunnerNotFoundError."""
        service = RunnerService()
        with patch("src.core.services.runner.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = _ok(stderr=LISTING)
            with pytest.raises(RunnerNotFoundError):
                await service.get_runner_status("nope")


class TestGetRunnerLogs:
    """Tests for log retrieval."""

    @pytest.mark.asyncio
    async def test_journal_used_first(self) -> None:
        """Lines come from journalctl when it works."""
        service = RunnerService()
        with patch("src.core.services.runner.check_output", new_callable=AsyncMock) as mock_check:
            mock_check.return_value = "line one\nline two"
            lines = await service.get_runner_logs("", 50)

        mock_check.assert_awaited_once_with(
            "journalctl", "-u", "gitlab-runner", "-n", "50", "--no-pager"
        )
        assert lines == ["line one", "line two"]

    @pytest.mark.asyncio
    async def test_debug_mode_requests_verbose_output(self) -> None:
        """Debug mode adds -o verbose to the journal query."""
        service = RunnerService(debug=True)
        with patch("src.core.services.runner.check_output", new_callable=AsyncMock) as mock_check:
            mock_check.return_value = ""
            await service.get_runner_logs("", 10)

        args = mock_check.await_args.args
        assert args[-2:] == ("-o", "verbose")

    @pytest.mark.asyncio
    async def test_falls_back_to_log_file(self) -> None:
        """When the journal fails, the log file is tailed."""
        service = RunnerService(log_file="/tmp/runner.log")
        with patch("src.core.services.runner.check_output", new_callable=AsyncMock) as mock_check:
            mock_check.side_effect = [
                CommandError(("journalctl",), 1, "no journal"),
                "from file",
            ]
            lines = await service.get_runner_logs("", 20)

        assert lines == ["from file"]
        mock_check.assert_awaited_with("tail", "-n", "20", "/tmp/runner.log")

    @pytest.mark.asyncio
    async def test_both_sources_fail(self) -> None:
        """RetrievalError is raised when neither source is readable."""
        service = RunnerService()
        with patch("src.core.services.runner.check_output", new_callable=AsyncMock) as mock_check:
            mock_check.side_effect = CommandError(("x",), 1, "nope")
            with pytest.raises(RetrievalError):
                await service.get_runner_logs("", 20)

    @pytest.mark.asyncio
    async def test_filters_by_runner(self) -> None:
        """Only lines mentioning the runner are kept."""
        service = RunnerService()
        with patch("src.core.services.runner.check_output", new_callable=AsyncMock) as mock_check:
            mock_check.return_value = "runner=a started\nrunner=b started\nrunner=a done"
            lines = await service.get_runner_logs("runner=a")

        assert lines == ["runner=a started", "runner=a done"]


class TestStreamRunnerLogs:
    """Tests for live log streaming."""

    @pytest.mark.asyncio
    async def test_yields_matching_lines(self) -> None:
        """Followed lines are filtered by runner name."""

        async def fake_stream(*args):
            for line in ["build-1 job=1", "build-2 job=2", "build-1 job=3"]:
                yield line

        service = RunnerService()
        with patch("src.core.services.runner.stream_lines", side_effect=fake_stream) as mock_stream:
            lines = [line async for line in service.stream_runner_logs("build-1")]

        assert lines == ["build-1 job=1", "build-1 job=3"]
        assert "-f" in mock_stream.call_args.args

    @pytest.mark.asyncio
    async def test_start_failure_raises(self) -> None:
        """A journal that cannot be followed raises RetrievalError."""

        async def failing_stream(*args):
            raise CommandError(args, 127, "not found")
            yield  # pragma: no cover

        service = RunnerService()
        with patch("src.core.services.runner.stream_lines", side_effect=failing_stream):
            with pytest.raises(RetrievalError):
                async for _ in service.stream_runner_logs():
                    pass


class TestRestartRunner:
    """Tests for restart_runner."""

    @pytest.mark.asyncio
    async def test_systemctl_success(self) -> None:
        """systemctl is tried first."""
        service = RunnerService()
        with patch("src.core.services.runner.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = _ok()
            await service.restart_runner()

        mock_run.assert_awaited_once_with("systemctl", "restart", "gitlab-runner")

    @pytest.mark.asyncio
    async def test_falls_back_to_service(self) -> None:
        """The service command is used when systemctl fails."""
        service = RunnerService()
        with patch("src.core.services.runner.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.side_effect = [_fail(), _ok()]
            await service.restart_runner()

        mock_run.assert_awaited_with("service", "gitlab-runner", "restart")

    @pytest.mark.asyncio
    async def test_both_fail(self) -> None:
        """RestartError is raised when both methods fail."""
        service = RunnerService()
        with patch("src.core.services.runner.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = _fail("access denied")
            with pytest.raises(RestartError, match="access denied"):
                await service.restart_runner()


class TestGetSystemStatus:
    """Tests for get_system_status."""

    @pytest.mark.asyncio
    async def test_collects_all_probes(self) -> None:
        """Each probe fills its own field."""
        ps_output = (
            "USER PID %CPU %MEM VSZ RSS TTY STAT START TIME COMMAND\n"
            "root 100 1.5 0.3 10000 2048 ? Ssl 10:00 0:01 /usr/bin/gitlab-runner run\n"
            "root 101 0.5 0.1 10000 1024 ? Sl 10:00 0:00 /usr/bin/gitlab-runner run\n"
            "root 200 0.0 0.0 1000 100 pts/0 S+ 10:01 0:00 grep gitlab-runner\n"
        )
        started = datetime.now() - timedelta(hours=2)
        show_output = f"ActiveEnterTimestamp={started.strftime('%a %Y-%m-%d %H:%M:%S')} CET\n"

        service = RunnerService()
        with patch("src.core.services.runner.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.side_effect = [
                _ok("active\n"),
                _ok("enabled\n"),
                _ok("2\n"),
                _ok(ps_output),
                _ok(show_output),
            ]
            status = await service.get_system_status()

        assert status.service_active is True
        assert status.service_enabled is True
        assert status.process_count == 2
        assert status.cpu_usage == pytest.approx(2.0)
        assert status.memory_usage == 3072 * 1024
        assert timedelta(hours=1, minutes=59) < status.uptime < timedelta(hours=2, minutes=1)

    @pytest.mark.asyncio
    async def test_failed_probes_keep_defaults(self) -> None:
        """Probes that fail leave their fields at the defaults."""
        service = RunnerService()
        with patch("src.core.services.runner.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = _fail()
            status = await service.get_system_status()

        assert status.service_active is False
        assert status.service_enabled is False
        assert status.process_count == 0
        assert status.cpu_usage == 0.0
        assert status.memory_usage == 0
        assert status.uptime == timedelta()


class TestGetJobHistory:
    """Tests for get_job_history."""

    @pytest.mark.asyncio
    async def test_reads_ten_lines_per_job(self) -> None:
        """The log window is ten lines per requested job."""
        service = RunnerService()
        with patch("src.core.services.runner.check_output", new_callable=AsyncMock) as mock_check:
            mock_check.return_value = ""
            await service.get_job_history(5)

        args = mock_check.await_args.args
        assert args[args.index("-n") + 1] == "50"

    @pytest.mark.asyncio
    async def test_later_lines_update_earlier(self) -> None:
        """Lines are folded in written order and newest jobs come first."""
        log = "\n".join([
            "Jan 02 10:00:00 host gitlab-runner[1]: job=1 project=7 runner=build-1",
            "Jan 02 10:00:30 host gitlab-runner[1]: job=1 status=success",
            "Jan 02 10:01:00 host gitlab-runner[1]: job=2 project=7 runner=build-1",
            "Jan 02 10:01:05 host gitlab-runner[1]: heartbeat",
        ])
        service = RunnerService()
        with patch("src.core.services.runner.check_output", new_callable=AsyncMock) as mock_check:
            mock_check.return_value = log
            history = await service.get_job_history(10)

        assert [job.id for job in history] == [2, 1]
        assert history[1].status == "success"
        assert history[0].status == "running"

    @pytest.mark.asyncio
    async def test_keeps_most_recent_jobs(self) -> None:
        """Only the `limit` most recently started jobs are returned."""
        log = "\n".join(
            f"Jan 02 10:0{i}:00 job={i} project=1 runner=r" for i in range(1, 6)
        )
        service = RunnerService()
        with patch("src.core.services.runner.check_output", new_callable=AsyncMock) as mock_check:
            mock_check.return_value = log
            history = await service.get_job_history(2)

        assert [job.id for job in history] == [5, 4]

    @pytest.mark.asyncio
    async def test_debug_mode_keeps_plain_journal_output(self) -> None:
        """History is read without -o verbose so start times survive."""
        service = RunnerService(debug=True)
        with patch("src.core.services.runner.check_output", new_callable=AsyncMock) as mock_check:
            mock_check.return_value = (
                "Jan 02 15:04:05 host gitlab-runner[1]: job=42 project=7 runner=build-1"
            )
            history = await service.get_job_history(1)

        args = mock_check.await_args.args
        assert "verbose" not in args
        assert args[-1] == "--no-pager"
        assert history[0].started is not None
        assert (history[0].started.month, history[0].started.day) == (1, 2)
        assert history[0].started.time() == datetime(2026, 1, 2, 15, 4, 5).time()

    @pytest.mark.asyncio
    async def test_non_positive_limit(self) -> None:
        """A zero limit returns nothing without reading the log."""
        service = RunnerService()
        with patch("src.core.services.runner.check_output", new_callable=AsyncMock) as mock_check:
            assert await service.get_job_history(0) == []

        mock_check.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retrieval_failure(self) -> None:
        """Unreadable logs raise RetrievalError."""
        service = RunnerService()
        with patch("src.core.services.runner.check_output", new_callable=AsyncMock) as mock_check:
            mock_check.side_effect = CommandError(("x",), 1, "nope")
            with pytest.raises(RetrievalError):
                await service.get_job_history(3)


class TestHelpers:
    """Tests for module-level helpers."""

    def test_extract_property_value(self) -> None:
        assert extract_property_value("ActiveEnterTimestamp=Mon 2024-01-01 12:00:00 UTC\n") == (
            "Mon 2024-01-01 12:00:00 UTC"
        )
        assert extract_property_value("ActiveEnterTimestamp=") == ""
        assert extract_property_value("") == ""

    def test_parse_process_usage_skips_grep(self) -> None:
        """grep lines and short lines are ignored."""
        output = (
            "root 1 2.5 0.1 100 512 ? S 10:00 0:00 gitlab-runner\n"
            "root 2 9.9 0.1 100 512 ? S 10:00 0:00 grep gitlab-runner\n"
            "gitlab-runner\n"
        )
        cpu, memory = parse_process_usage(output, "gitlab-runner")

        assert cpu == pytest.approx(2.5)
        assert memory == 512 * 1024

    def test_set_debug_mode(self) -> None:
        service = RunnerService()
        service.set_debug_mode(True)
        assert service.debug_mode is True


class TestSingleton:
    """Tests for the shared service instance."""

    def test_built_from_dashboard_config(self) -> None:
        """The default instance uses the runner section of the settings."""
        set_runner_service(None)
        try:
            with patch("src.core.services.runner.get_section") as mock_section:
                mock_section.return_value = {
                    "config_path": "/srv/config.toml",
                    "service_name": "my-runner",
                }
                service = get_runner_service()

            assert service.config_path == "/srv/config.toml"
            assert service.service_name == "my-runner"
            assert service.binary == "gitlab-runner"
            assert get_runner_service() is service
        finally:
            set_runner_service(None)
