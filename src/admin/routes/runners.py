"""Runner listing routes for Admin UI."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from src.admin.auth import require_login
from src.admin.templates_config import templates
from src.core.exceptions import RetrievalError, RunnerNotFoundError
from src.core.services.runner import get_runner_service

router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def list_runners(
    request: Request,
    _: None = Depends(require_login),
) -> HTMLResponse:
    """
    Display configured runners.

    Args:
        request: FastAPI request.

    Returns:
        Runners page HTML.
    """
    service = get_runner_service()
    runners = []
    error = None

    try:
        runners = await service.list_runners()
    except RetrievalError as e:
        error = str(e)

    return templates.TemplateResponse(
        "runners.html",
        {
            "request": request,
            "runners": runners,
            "error": error,
            "debug": service.debug_mode,
        },
    )


@router.get("/runners/{name}/status", response_class=HTMLResponse)
async def runner_status(
    request: Request,
    name: str,
    _: None = Depends(require_login),
) -> HTMLResponse:
    """
    Verify one runner and return its status cell for HTMX swap.

    Args:
        request: FastAPI request.
        name: Runner name.

    Returns:
        Status cell HTML.
    """
    service = get_runner_service()
    try:
        runner = await service.get_runner_status(name)
    except RunnerNotFoundError as e:
        return HTMLResponse(status_code=404, content=str(e))
    except RetrievalError as e:
        return HTMLResponse(status_code=502, content=str(e))

    return templates.TemplateResponse(
        "runners/_status.html",
        {"request": request, "runner": runner},
    )
