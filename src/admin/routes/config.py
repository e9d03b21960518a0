"""Runner agent config.toml editing routes for Admin UI."""

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, Response

from src.admin.auth import require_login
from src.admin.templates_config import templates
from src.core.config.runner_config import VALID_LOG_LEVELS, get_runner_config_manager
from src.core.exceptions import ConfigError, RunnerNotFoundError

router = APIRouter(prefix="/config")


def _parse_int(value: str | None, field_name: str) -> int | None:
    """Parse an optional integer form field; blank means unchanged."""
    if value is None or value.strip() == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{field_name} must be an integer")


def _render(request: Request, status_code: int = 200, **context) -> HTMLResponse:
    manager = get_runner_config_manager()
    return templates.TemplateResponse(
        "config.html",
        {
            "request": request,
            "config": manager.config if manager.is_loaded else None,
            "path": str(manager.path),
            "log_levels": VALID_LOG_LEVELS,
            "error": None,
            "message": None,
            **context,
        },
        status_code=status_code,
    )


@router.get("", response_class=HTMLResponse)
async def view_config(
    request: Request,
    _: None = Depends(require_login),
) -> HTMLResponse:
    """
    Display global settings and runner blocks of config.toml.

    The file is re-read on every visit so edits made elsewhere show up.
    """
    manager = get_runner_config_manager()
    try:
        manager.load()
    except ConfigError as e:
        return _render(request, error=f"Error loading config: {e}")

    return _render(request)


@router.post("/global", response_class=HTMLResponse)
async def update_global(
    request: Request,
    _: None = Depends(require_login),
    concurrent: str = Form(None),
    check_interval: str = Form(None),
    log_level: str = Form(None),
) -> HTMLResponse:
    """
    Update global settings, validate and save.

    Args:
        request: FastAPI request.
        concurrent: Maximum concurrent jobs.
        check_interval: Seconds between job polls.
        log_level: Agent log level.

    Returns:
        Config page HTML with a success or error message.
    """
    manager = get_runner_config_manager()
    try:
        manager.load()
        manager.update_global(
            concurrent=_parse_int(concurrent, "concurrent"),
            check_interval=_parse_int(check_interval, "check_interval"),
            log_level=log_level or None,
        )
        manager.validate()
        manager.save()
    except ValueError as e:
        # Re-read so the page shows what is actually on disk
        manager.load()
        return _render(request, status_code=400, error=str(e))
    except ConfigError as e:
        return _render(request, status_code=500, error=str(e))

    return _render(request, message="Configuration saved")


@router.post("/runners/{name}", response_class=HTMLResponse)
async def update_runner(
    request: Request,
    name: str,
    _: None = Depends(require_login),
    limit: str = Form(None),
    max_builds: str = Form(None),
    request_concurrency: str = Form(None),
    output_limit: str = Form(None),
    tags: str = Form(None),
    run_untagged: str = Form(None),
    locked: str = Form(None),
) -> Response:
    """
    Update one runner block, validate and save.

    Checkbox fields are sent as "true" when checked and omitted otherwise.

    Returns:
        Config page HTML with a success or error message.
    """
    manager = get_runner_config_manager()
    try:
        manager.load()
        manager.update_runner(
            name,
            limit=_parse_int(limit, "limit"),
            max_builds=_parse_int(max_builds, "max_builds"),
            request_concurrency=_parse_int(request_concurrency, "request_concurrency"),
            output_limit=_parse_int(output_limit, "output_limit"),
            tags=tags.split(",") if tags is not None else None,
            run_untagged=run_untagged == "true",
            locked=locked == "true",
        )
        manager.validate()
        manager.save()
    except RunnerNotFoundError as e:
        return Response(status_code=404, content=str(e))
    except ValueError as e:
        manager.load()
        return _render(request, status_code=400, error=str(e))
    except ConfigError as e:
        return _render(request, status_code=500, error=str(e))

    return _render(request, message=f"Runner {name} saved")
