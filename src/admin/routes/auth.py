"""Login and logout routes for Admin UI."""

import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from src.admin.auth import (
    LOGIN_URL,
    auth_enabled,
    clear_session_cookie,
    set_session_cookie,
    verify_password,
)
from src.admin.templates_config import templates

logger = logging.getLogger(__name__)

router = APIRouter()

DASHBOARD_URL = "/admin/"


@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request, error: str | None = None) -> Response:
    """
    Display login form.

    Without a configured password there is nothing to log in to, so the
    dashboard is shown instead.

    Args:
        request: FastAPI request.
        error: Optional error message to display.
    """
    if not auth_enabled():
        return RedirectResponse(url=DASHBOARD_URL, status_code=303)

    return templates.TemplateResponse(
        "login.html",
        {"request": request, "error": error}
    )


@router.post("/login")
async def login(request: Request, password: str = Form(...)) -> Response:
    """
    Check the submitted password and start a session.

    Returns:
        Redirect to the runners page on success, the login form with a
        401 on failure.
    """
    if verify_password(password):
        response = RedirectResponse(url=DASHBOARD_URL, status_code=303)
        set_session_cookie(response)
        return response

    logger.warning(f"Failed admin login from {request.client.host if request.client else 'unknown'}")
    return templates.TemplateResponse(
        "login.html",
        {"request": request, "error": "Invalid password"},
        status_code=401
    )


@router.get("/logout")
async def logout() -> RedirectResponse:
    """Clear the session and go back to the login page."""
    response = RedirectResponse(url=LOGIN_URL, status_code=303)
    clear_session_cookie(response)
    return response
