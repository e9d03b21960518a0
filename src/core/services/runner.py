"""
Service for querying and controlling the local GitLab Runner agent.

Everything the dashboard knows about the agent comes from system
commands (gitlab-runner, journalctl, tail, systemctl, ps). Their output
is best-effort text handed to the parsers in src.core.primitives.
"""

import logging
from collections.abc import AsyncIterator

from src.core.config.loader import get_section
from src.core.exceptions import RestartError, RetrievalError, RunnerNotFoundError
from src.core.models.runner import Job, Runner, SystemStatus
from src.core.primitives.job_history import build_job_history
from src.core.primitives.runner_list import parse_runner_list
from src.core.utils.process import CommandError, check_output, run_command, stream_lines
from src.core.utils.time import now_local, parse_systemd_timestamp

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/gitlab-runner/config.toml"
DEFAULT_SERVICE_NAME = "gitlab-runner"
DEFAULT_BINARY = "gitlab-runner"
DEFAULT_LOG_FILE = "/var/log/gitlab-runner.log"

# Log lines read per requested history entry
HISTORY_LINES_PER_JOB = 10


def extract_property_value(output: str) -> str:
    """
    Get the value part of a "Key=Value" line from `systemctl show`.

    Returns:
        Everything after the first "=", stripped, or "" if absent.
    """
    idx = output.find("=")
    if idx >= 0 and idx < len(output) - 1:
        return output[idx + 1:].strip()
    return ""


class RunnerService:
    """
    Facade over the runner agent's command-line tools.

    Provides runner listing, per-runner verification, log retrieval and
    streaming, service restart, host status and job history.
    """

    def __init__(
        self,
        config_path: str | None = None,
        debug: bool = False,
        service_name: str = DEFAULT_SERVICE_NAME,
        binary: str = DEFAULT_BINARY,
        log_file: str = DEFAULT_LOG_FILE,
    ) -> None:
        """
        Args:
            config_path: Agent config file passed to gitlab-runner.
                Defaults to /etc/gitlab-runner/config.toml.
            debug: Request verbose journal output.
            service_name: systemd unit of the agent.
            binary: gitlab-runner executable.
            log_file: Plain log file used when the journal is unavailable.
        """
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self.debug_mode = debug
        self.service_name = service_name
        self.binary = binary
        self.log_file = log_file

    def set_debug_mode(self, enabled: bool) -> None:
        """Enable or disable verbose journal output."""
        self.debug_mode = enabled

    async def list_runners(self) -> list[Runner]:
        """
        List runners configured in the agent.

        Raises:
            RetrievalError: If the listing command fails.
        """
        result = await run_command(self.binary, "list", "--config", self.config_path)
        if not result.ok:
            raise RetrievalError(
                f"Failed to list runners: {result.stderr.strip() or result.returncode}"
            )

        # Newer gitlab-runner releases print the listing on stderr
        return parse_runner_list(result.stdout + "\n" + result.stderr)

    async def get_runner_status(self, name: str) -> Runner:
        """
        Look up a runner and verify it can reach its coordinator.

        Raises:
            RetrievalError: If the listing command fails.
            RunnerNotFoundError: If no runner has that name.
        """
        for runner in await self.list_runners():
            if runner.name != name:
                continue

            result = await run_command(
                self.binary, "verify", "--name", name, "--config", self.config_path
            )
            if "is alive" in result.stdout + result.stderr:
                runner.status = "active"
                runner.online = True
            else:
                runner.status = "inactive"
                runner.online = False
            return runner

        raise RunnerNotFoundError(f"Runner {name} not found")

    async def _read_log(self, lines: int, verbose: bool = False) -> str:
        """
        Read the last `lines` log lines, journal first, log file second.

        `verbose` switches the journal to `-o verbose`, which moves the
        message onto indented MESSAGE= lines without a leading timestamp.

        Raises:
            RetrievalError: If both sources fail.
        """
        args = ["journalctl", "-u", self.service_name, "-n", str(lines), "--no-pager"]
        if verbose:
            args.extend(["-o", "verbose"])

        try:
            return await check_output(*args)
        except CommandError as e:
            logger.warning(f"Journal unavailable ({e}), falling back to {self.log_file}")

        try:
            return await check_output("tail", "-n", str(lines), self.log_file)
        except CommandError as e:
            raise RetrievalError(f"Failed to get logs: {e}") from e

    async def get_runner_logs(self, name: str, lines: int = 100) -> list[str]:
        """
        Get recent agent log lines, optionally only those mentioning a runner.

        Args:
            name: Runner name to filter on; "" returns every line.
            lines: Number of lines to read from the log.

        Raises:
            RetrievalError: If no log source is readable.
        """
        output = await self._read_log(lines, verbose=self.debug_mode)
        return [line for line in output.split("\n") if not name or name in line]

    async def stream_runner_logs(self, name: str = "") -> AsyncIterator[str]:
        """
        Follow the agent journal, yielding new lines as they are written.

        Args:
            name: Runner name to filter on; "" yields every line.

        Raises:
            RetrievalError: If the journal cannot be followed.
        """
        try:
            async for line in stream_lines(
                "journalctl", "-u", self.service_name, "-f", "--no-pager"
            ):
                if not name or name in line:
                    yield line
        except CommandError as e:
            raise RetrievalError(f"Failed to start log streaming: {e}") from e

    async def restart_runner(self) -> None:
        """
        Restart the agent service via systemctl, falling back to `service`.

        Raises:
            RestartError: If both methods fail.
        """
        result = await run_command("systemctl", "restart", self.service_name)
        if result.ok:
            logger.info(f"Restarted {self.service_name} via systemctl")
            return

        logger.warning(
            f"systemctl restart failed ({result.stderr.strip()}), trying service command"
        )
        result = await run_command("service", self.service_name, "restart")
        if result.ok:
            logger.info(f"Restarted {self.service_name} via service")
            return

        raise RestartError(
            f"Failed to restart {self.service_name} service: "
            f"{result.stderr.strip() or result.returncode}"
        )

    async def get_system_status(self) -> SystemStatus:
        """
        Collect service state and resource usage of the agent.

        Each probe is independent; a failing probe leaves its field at
        the default instead of failing the whole status.
        """
        status = SystemStatus()

        result = await run_command("systemctl", "is-active", self.service_name)
        status.service_active = result.stdout.strip() == "active"

        result = await run_command("systemctl", "is-enabled", self.service_name)
        status.service_enabled = result.stdout.strip() == "enabled"

        result = await run_command("pgrep", "-c", self.service_name)
        try:
            status.process_count = int(result.stdout.split()[0])
        except (IndexError, ValueError):
            status.process_count = 0

        result = await run_command("ps", "aux")
        cpu, memory = parse_process_usage(result.stdout, self.binary)
        status.cpu_usage = cpu
        status.memory_usage = memory

        result = await run_command(
            "systemctl", "show", self.service_name, "--property=ActiveEnterTimestamp"
        )
        started = parse_systemd_timestamp(extract_property_value(result.stdout))
        if started is not None:
            status.uptime = now_local() - started

        return status

    async def get_job_history(self, limit: int) -> list[Job]:
        """
        Reconstruct the most recent jobs from the agent log.

        Reads the last limit * 10 lines in the order they were written and
        folds all of them, so later lines update earlier ones. The result
        keeps the `limit` most recently started jobs.

        Raises:
            RetrievalError: If no log source is readable.
        """
        if limit <= 0:
            return []

        # Start times come from leading line timestamps: plain output only
        output = await self._read_log(limit * HISTORY_LINES_PER_JOB)
        return build_job_history(output.split("\n"), limit, now=now_local())


def parse_process_usage(ps_output: str, process_name: str) -> tuple[float, int]:
    """
    Sum %CPU and resident memory of matching processes in `ps aux` output.

    Args:
        ps_output: Full `ps aux` output.
        process_name: Substring identifying the agent's processes.

    Returns:
        Tuple of (cpu percent, memory in bytes).
    """
    cpu = 0.0
    memory = 0
    for line in ps_output.split("\n"):
        if process_name not in line or "grep" in line:
            continue
        fields = line.split()
        if len(fields) <= 5:
            continue
        try:
            cpu += float(fields[2])
        except ValueError:
            pass
        try:
            memory += int(fields[5]) * 1024
        except ValueError:
            pass
    return cpu, memory


# Singleton instance for convenience
_runner_service: RunnerService | None = None


def get_runner_service() -> RunnerService:
    """Get the global runner service instance."""
    global _runner_service
    if _runner_service is None:
        runner_config = get_section("runner")
        _runner_service = RunnerService(
            config_path=runner_config.get("config_path"),
            service_name=runner_config.get("service_name", DEFAULT_SERVICE_NAME),
            binary=runner_config.get("binary", DEFAULT_BINARY),
            log_file=runner_config.get("log_file", DEFAULT_LOG_FILE),
        )
    return _runner_service


def set_runner_service(service: RunnerService | None) -> None:
    """Replace the global runner service (used at startup and in tests)."""
    global _runner_service
    _runner_service = service
