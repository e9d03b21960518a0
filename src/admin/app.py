"""
Admin Web UI FastAPI application.

Provides an HTMX-based dashboard for the runner agent: runners, logs,
config, system status and job history. Mounted at /admin on the main app.
"""

from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from src.admin.auth import is_authenticated
from src.admin.routes import (
    auth_router,
    config_router,
    history_router,
    logs_router,
    runners_router,
    system_router,
)

PUBLIC_PATHS = ("/login", "/logout")


class LoginRedirectMiddleware(BaseHTTPMiddleware):
    """Send requests without a valid session to the login page."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path.endswith(PUBLIC_PATHS) or is_authenticated(request):
            return await call_next(request)

        # root_path is "/admin" when mounted, "" when served on its own
        login_url = f"{request.scope.get('root_path', '')}/login"
        if request.headers.get("HX-Request"):
            # A redirect would be swapped into the page fragment
            return Response(status_code=200, headers={"HX-Redirect": login_url})
        return RedirectResponse(url=login_url, status_code=303)


def create_admin_app() -> FastAPI:
    """
    Create and configure the admin FastAPI application.

    Returns:
        Configured FastAPI app for admin UI.
    """
    admin_app = FastAPI(
        title="Runner Dashboard Admin",
        docs_url=None,
        redoc_url=None,
    )

    admin_app.add_middleware(LoginRedirectMiddleware)

    admin_app.include_router(auth_router)
    admin_app.include_router(runners_router)
    admin_app.include_router(logs_router)
    admin_app.include_router(config_router)
    admin_app.include_router(system_router)
    admin_app.include_router(history_router)

    return admin_app
