"""
Data models for runners, jobs and host status.

These are plain in-memory records rebuilt on every refresh. Nothing here
is persisted; the agent's log and its config file are the only sources.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta


@dataclass
class Job:
    """
    A job reconstructed from agent log lines.

    Unknown values are represented as empty strings, None timestamps,
    and an exit code of 0 (0 means "not reported", not "succeeded").
    """

    id: int
    status: str = ""
    project: str = ""
    runner_name: str = ""
    started: datetime | None = None
    finished: datetime | None = None
    duration: timedelta | None = None
    exit_code: int = 0

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, status='{self.status}')>"


@dataclass
class Runner:
    """
    A runner entry from the agent's runner listing.

    The id is a short fingerprint of the token, safe to show on screen.
    """

    name: str = ""
    token: str = ""
    id: str = ""
    executor: str = ""
    status: str = "unknown"
    online: bool = False

    def __repr__(self) -> str:
        return f"<Runner(name='{self.name}', executor='{self.executor}')>"


@dataclass
class SystemStatus:
    """Snapshot of the agent service on this host."""

    service_active: bool = False
    service_enabled: bool = False
    process_count: int = 0
    memory_usage: int = 0
    cpu_usage: float = 0.0
    uptime: timedelta = field(default_factory=timedelta)
