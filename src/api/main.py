"""
FastAPI application: main entry point.

Provides the JSON API, guarded by the admin session when a password is
set, and mounts the admin dashboard at /admin.
Background refreshers for job history and system status run for the
lifetime of the app.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query

from src.admin import create_admin_app
from src.admin.auth import require_api_session
from src.core.config import get_section
from src.core.exceptions import RestartError, RetrievalError, RunnerNotFoundError
from src.core.models.runner import Job
from src.core.services.runner import get_runner_service
from src.core.utils.time import format_job_duration
from src.workers.refresher import HISTORY, SYSTEM, create_refreshers, get_refresher, set_refreshers

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _job_to_dict(job: Job) -> dict:
    return {
        "id": job.id,
        "status": job.status,
        "project": job.project,
        "runner_name": job.runner_name,
        "started": job.started.isoformat() if job.started else None,
        "finished": job.finished.isoformat() if job.finished else None,
        "duration_seconds": job.duration.total_seconds() if job.duration is not None else None,
        "duration": format_job_duration(job.duration),
        "exit_code": job.exit_code,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info("Starting Runner Dashboard...")

    refresh_config = get_section("refresh")
    refreshers = create_refreshers(
        get_runner_service(),
        history_limit=int(refresh_config.get("history_limit", 50)),
        history_seconds=float(refresh_config.get("history_seconds", 30)),
        system_seconds=float(refresh_config.get("system_seconds", 5)),
    )
    set_refreshers(refreshers)
    for refresher in refreshers.values():
        refresher.start()

    yield

    # Shutdown
    logger.info("Shutting down...")
    for refresher in refreshers.values():
        await refresher.stop()


def create_app() -> FastAPI:
    """
    Create the dashboard application.

    Returns:
        FastAPI app with the JSON API and the admin UI mounted at /admin.
    """
    app = FastAPI(
        title="Runner Dashboard",
        description="Operator dashboard for a local GitLab Runner agent",
        version="0.1.0",
        lifespan=lifespan
    )

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"status": "ok", "service": "runner-dashboard"}

    # Same session as the admin pages; open when no password is set
    api = APIRouter(prefix="/api", dependencies=[Depends(require_api_session)])

    @api.get("/runners")
    async def list_runners():
        """List runners registered with the agent."""
        try:
            runners = await get_runner_service().list_runners()
        except RetrievalError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return [
            {"name": r.name, "id": r.id, "executor": r.executor, "status": r.status}
            for r in runners
        ]

    @api.get("/runners/{name}")
    async def runner_status(name: str):
        """Verify one runner."""
        try:
            runner = await get_runner_service().get_runner_status(name)
        except RunnerNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except RetrievalError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return {
            "name": runner.name,
            "id": runner.id,
            "executor": runner.executor,
            "status": runner.status,
            "online": runner.online,
        }

    @api.get("/history")
    async def job_history(refresh: bool = False):
        """Latest job history snapshot, or a fresh one when refresh=true."""
        refresher = get_refresher(HISTORY)
        snapshot = await (refresher.refresh() if refresh else refresher.latest())
        if not snapshot.loaded and snapshot.error:
            raise HTTPException(status_code=502, detail=snapshot.error)
        return {
            "jobs": [_job_to_dict(job) for job in snapshot.value or []],
            "error": snapshot.error,
            "refreshed_at": snapshot.refreshed_at.isoformat() if snapshot.refreshed_at else None,
        }

    @api.get("/system")
    async def system_status():
        """Latest service state and resource usage."""
        snapshot = await get_refresher(SYSTEM).latest()
        if not snapshot.loaded and snapshot.error:
            raise HTTPException(status_code=502, detail=snapshot.error)
        status = snapshot.value
        return {
            "service_active": status.service_active,
            "service_enabled": status.service_enabled,
            "process_count": status.process_count,
            "memory_usage": status.memory_usage,
            "cpu_usage": status.cpu_usage,
            "uptime_seconds": status.uptime.total_seconds(),
            "error": snapshot.error,
        }

    @api.get("/logs")
    async def runner_logs(runner: str = "", lines: int = Query(default=100, ge=1, le=5000)):
        """Recent agent log lines, optionally for one runner."""
        try:
            log_lines = await get_runner_service().get_runner_logs(runner, lines)
        except RetrievalError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return {"runner": runner, "lines": log_lines}

    @api.post("/restart")
    async def restart():
        """Restart the agent service."""
        try:
            await get_runner_service().restart_runner()
        except RestartError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return {"success": True}

    app.include_router(api)
    app.mount("/admin", create_admin_app())

    return app
