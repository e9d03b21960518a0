"""Log viewing and live streaming routes for Admin UI."""

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, StreamingResponse

from src.admin.auth import require_login
from src.admin.templates_config import templates
from src.core.exceptions import RetrievalError
from src.core.services.runner import get_runner_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/logs")

MAX_LINES = 5000


@router.get("", response_class=HTMLResponse)
async def view_logs(
    request: Request,
    runner: str = "",
    lines: int = Query(default=100, ge=1, le=MAX_LINES),
    _: None = Depends(require_login),
) -> HTMLResponse:
    """
    Display recent agent log lines.

    Args:
        request: FastAPI request.
        runner: Only show lines mentioning this runner.
        lines: Number of log lines to read.

    Returns:
        Logs page HTML.
    """
    service = get_runner_service()
    log_lines: list[str] = []
    error = None

    try:
        log_lines = await service.get_runner_logs(runner, lines)
    except RetrievalError as e:
        error = str(e)

    return templates.TemplateResponse(
        "logs.html",
        {
            "request": request,
            "runner": runner,
            "lines": lines,
            "log_lines": log_lines,
            "error": error,
        },
    )


@router.get("/stream")
async def stream_logs(
    runner: str = "",
    _: None = Depends(require_login),
) -> StreamingResponse:
    """
    Stream new agent log lines as server-sent events.

    Args:
        runner: Only stream lines mentioning this runner.

    Returns:
        text/event-stream response that stays open until the client leaves.
    """
    service = get_runner_service()

    async def events():
        try:
            async for line in service.stream_runner_logs(runner):
                yield f"data: {line}\n\n"
        except RetrievalError as e:
            logger.error(f"Log stream failed: {e}")
            yield f"event: error\ndata: {e}\n\n"

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )
