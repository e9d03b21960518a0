"""
Background refresh loops for the dashboard.

Each refresher periodically calls one async fetch function (job history,
system status) and publishes the outcome as a Snapshot:
- History is rebuilt every 30 seconds, system status every 5 seconds
- A failed refresh keeps the previous value and records the error
- Every refresh gets a sequence number; a result that arrives after a
  newer refresh was issued is discarded, so late results never
  overwrite fresher ones
- Loops stop gracefully when their shutdown event is set
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from src.core.config.loader import get_section
from src.core.exceptions import RunnerDashboardError
from src.core.services.runner import RunnerService, get_runner_service
from src.core.utils.time import now_local

logger = logging.getLogger(__name__)

HISTORY = "history"
SYSTEM = "system"


@dataclass(frozen=True)
class Snapshot:
    """Latest published outcome of a refresher."""

    value: Any = None
    error: str | None = None
    refreshed_at: datetime | None = None
    sequence: int = 0

    @property
    def loaded(self) -> bool:
        """True once at least one refresh succeeded."""
        return self.refreshed_at is not None


class PeriodicRefresher:
    """
    Runs a fetch function on an interval and keeps its latest result.

    Only the refresh issued last may publish. Refreshes are not
    cancelled; an outdated one simply has its result dropped.
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[[], Awaitable[Any]],
        interval_seconds: float,
    ) -> None:
        self.name = name
        self._fetch = fetch
        self.interval_seconds = interval_seconds
        self.snapshot = Snapshot()
        self._issued = 0
        self._shutdown = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self) -> Snapshot:
        """
        Fetch once and publish the result if no newer refresh was issued.

        Returns:
            The current snapshot after this refresh.
        """
        self._issued += 1
        sequence = self._issued

        try:
            value = await self._fetch()
        except RunnerDashboardError as e:
            if sequence != self._issued:
                logger.debug(f"Discarding stale {self.name} error #{sequence}")
                return self.snapshot
            logger.error(f"{self.name} refresh failed: {e}")
            self.snapshot = replace(self.snapshot, error=str(e), sequence=sequence)
            return self.snapshot

        if sequence != self._issued:
            logger.debug(
                f"Discarding stale {self.name} result #{sequence} (latest #{self._issued})"
            )
            return self.snapshot

        self.snapshot = Snapshot(
            value=value,
            error=None,
            refreshed_at=now_local(),
            sequence=sequence,
        )
        return self.snapshot

    async def latest(self) -> Snapshot:
        """Return the current snapshot, refreshing first if nothing loaded yet."""
        if not self.snapshot.loaded and self.snapshot.error is None:
            return await self.refresh()
        return self.snapshot

    async def run(self) -> None:
        """
        Refresh loop.

        Refreshes immediately, then every interval until stopped.
        """
        logger.info(f"{self.name} refresher started (every {self.interval_seconds}s)")

        while not self._shutdown.is_set():
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Unexpected error in {self.name} refresher: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

        logger.info(f"{self.name} refresher stopped")

    def start(self) -> None:
        """Start the refresh loop as a background task."""
        if self.running:
            return
        self._shutdown.clear()
        self._task = asyncio.create_task(self.run(), name=f"refresher-{self.name}")

    async def stop(self) -> None:
        """Signal the loop to stop and wait for it."""
        self._shutdown.set()
        if self._task is not None:
            await self._task
            self._task = None


def create_refreshers(
    service: RunnerService,
    history_limit: int = 50,
    history_seconds: float = 30,
    system_seconds: float = 5,
) -> dict[str, PeriodicRefresher]:
    """
    Build the history and system status refreshers for a runner service.

    Args:
        service: Service used for fetching.
        history_limit: Number of jobs kept in the history snapshot.
        history_seconds: History refresh interval.
        system_seconds: System status refresh interval.
    """

    async def fetch_history():
        return await service.get_job_history(history_limit)

    return {
        HISTORY: PeriodicRefresher(HISTORY, fetch_history, history_seconds),
        SYSTEM: PeriodicRefresher(SYSTEM, service.get_system_status, system_seconds),
    }


# Registry shared by the API lifespan and the admin routes
_refreshers: dict[str, PeriodicRefresher] | None = None


def get_refresher(name: str) -> PeriodicRefresher:
    """Get a refresher by name, building the default set on first use."""
    global _refreshers
    if _refreshers is None:
        refresh_config = get_section("refresh")
        _refreshers = create_refreshers(
            get_runner_service(),
            history_limit=int(refresh_config.get("history_limit", 50)),
            history_seconds=float(refresh_config.get("history_seconds", 30)),
            system_seconds=float(refresh_config.get("system_seconds", 5)),
        )
    return _refreshers[name]


def set_refreshers(refreshers: dict[str, PeriodicRefresher] | None) -> None:
    """Replace the refresher registry (used at startup and in tests)."""
    global _refreshers
    _refreshers = refreshers
