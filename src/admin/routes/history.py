"""Job history routes for Admin UI."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from src.admin.auth import require_login
from src.admin.templates_config import templates
from src.workers.refresher import HISTORY, get_refresher

router = APIRouter(prefix="/history")


def _render(request: Request, snapshot) -> HTMLResponse:
    return templates.TemplateResponse(
        "history.html",
        {
            "request": request,
            "jobs": snapshot.value or [],
            "error": snapshot.error,
            "refreshed_at": snapshot.refreshed_at,
        },
    )


@router.get("", response_class=HTMLResponse)
async def job_history(
    request: Request,
    _: None = Depends(require_login),
) -> HTMLResponse:
    """
    Display recent jobs reconstructed from the agent log.

    Shows the latest background refresh; the first visit triggers one.
    """
    snapshot = await get_refresher(HISTORY).latest()
    return _render(request, snapshot)


@router.post("/refresh", response_class=HTMLResponse)
async def refresh_history(
    request: Request,
    _: None = Depends(require_login),
) -> HTMLResponse:
    """Rebuild job history now instead of waiting for the next refresh."""
    snapshot = await get_refresher(HISTORY).refresh()
    return _render(request, snapshot)
