"""System status and service control routes for Admin UI."""

import asyncio

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from src.admin.auth import require_login
from src.admin.templates_config import templates
from src.core.exceptions import RestartError
from src.core.services.runner import get_runner_service
from src.workers.refresher import SYSTEM, get_refresher

router = APIRouter(prefix="/system")

# Give the service a moment to come up before probing it again
RESTART_SETTLE_SECONDS = 2


@router.get("", response_class=HTMLResponse)
async def system_status(
    request: Request,
    _: None = Depends(require_login),
) -> HTMLResponse:
    """
    Display service state, uptime and resource usage of the agent.

    Returns:
        System page HTML.
    """
    snapshot = await get_refresher(SYSTEM).latest()

    return templates.TemplateResponse(
        "system.html",
        {
            "request": request,
            "status": snapshot.value,
            "error": snapshot.error,
            "refreshed_at": snapshot.refreshed_at,
            "message": None,
        },
    )


@router.post("/restart", response_class=HTMLResponse)
async def restart_service(
    request: Request,
    _: None = Depends(require_login),
) -> HTMLResponse:
    """
    Restart the agent service, then show fresh status.

    Returns:
        System page HTML with the restart outcome.
    """
    service = get_runner_service()
    refresher = get_refresher(SYSTEM)

    try:
        await service.restart_runner()
    except RestartError as e:
        snapshot = refresher.snapshot
        return templates.TemplateResponse(
            "system.html",
            {
                "request": request,
                "status": snapshot.value,
                "error": str(e),
                "refreshed_at": snapshot.refreshed_at,
                "message": None,
            },
            status_code=502,
        )

    await asyncio.sleep(RESTART_SETTLE_SECONDS)
    snapshot = await refresher.refresh()

    return templates.TemplateResponse(
        "system.html",
        {
            "request": request,
            "status": snapshot.value,
            "error": snapshot.error,
            "refreshed_at": snapshot.refreshed_at,
            "message": "Service restarted",
        },
    )
