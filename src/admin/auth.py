"""
Session authentication for the runner dashboard.

One admin password guards both the /admin pages and the /api routes.
A successful login sets a signed `dashboard_session` cookie scoped to
the whole site, so the JSON API accepts the same session as the pages.
With no password configured, every request is let through.

Session values look like `<nonce>.<issued_at>.<signature>`. The signing
key mixes the configured session secret with the password, so changing
either one ends every open session.
"""

import hashlib
import hmac
import logging
import secrets
import time
from typing import Any

from fastapi import HTTPException, Request, Response

from src.core.config import get_section

logger = logging.getLogger(__name__)

SESSION_COOKIE = "dashboard_session"
LOGIN_URL = "/admin/login"
DEFAULT_EXPIRY_HOURS = 24


def get_admin_config() -> dict[str, Any]:
    """Load the `admin` settings section."""
    return get_section("admin")


def auth_enabled() -> bool:
    """True when an admin password is configured."""
    return bool(get_admin_config().get("password"))


def verify_password(password: str) -> bool:
    """
    Check a submitted password against the configured one.

    Returns:
        False whenever no password is configured.
    """
    expected = get_admin_config().get("password") or ""
    if not expected:
        return False
    return hmac.compare_digest(password.encode(), expected.encode())


def _signature(payload: str, admin_config: dict[str, Any]) -> str:
    secret = str(admin_config.get("session_secret") or "")
    password = str(admin_config.get("password") or "")
    key = hashlib.sha256(f"runner-dashboard:{secret}:{password}".encode()).digest()
    return hmac.new(key, payload.encode(), hashlib.sha256).hexdigest()


def _expiry_seconds(admin_config: dict[str, Any]) -> float:
    return float(admin_config.get("session_expiry_hours", DEFAULT_EXPIRY_HOURS)) * 3600


def issue_session(issued_at: int | None = None) -> str:
    """
    Create a signed session value.

    Args:
        issued_at: Unix time the session starts. Defaults to now.
    """
    if issued_at is None:
        issued_at = int(time.time())
    payload = f"{secrets.token_urlsafe(16)}.{issued_at}"
    return f"{payload}.{_signature(payload, get_admin_config())}"


def session_valid(value: str | None, now: float | None = None) -> bool:
    """
    Check a session value's signature and age.

    Args:
        value: Cookie value, possibly missing or malformed.
        now: Unix time to check expiry against. Defaults to now.
    """
    if not value:
        return False

    payload, _, signature = value.rpartition(".")
    nonce, _, issued = payload.partition(".")
    if not nonce or not issued.isdigit():
        return False

    admin_config = get_admin_config()
    if not hmac.compare_digest(signature.encode(), _signature(payload, admin_config).encode()):
        return False

    if now is None:
        now = time.time()
    return now - int(issued) <= _expiry_seconds(admin_config)


def set_session_cookie(response: Response) -> None:
    """Start a session on `response`, valid for both /admin and /api."""
    response.set_cookie(
        key=SESSION_COOKIE,
        value=issue_session(),
        max_age=int(_expiry_seconds(get_admin_config())),
        path="/",
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=SESSION_COOKIE, path="/")


def is_authenticated(request: Request) -> bool:
    """True if auth is disabled or the request carries a valid session."""
    if not auth_enabled():
        return True
    return session_valid(request.cookies.get(SESSION_COOKIE))


def require_login(request: Request) -> None:
    """
    Dependency for admin pages: send anonymous visitors to the login page.

    Raises:
        HTTPException: 303 redirect to the login page.
    """
    if not is_authenticated(request):
        raise HTTPException(status_code=303, headers={"Location": LOGIN_URL})


def require_api_session(request: Request) -> None:
    """
    Dependency for /api routes: reject requests without a session.

    Raises:
        HTTPException: 401 when auth is enabled and the session is missing,
            expired or forged.
    """
    if not is_authenticated(request):
        logger.warning(f"Rejected unauthenticated API call: {request.method} {request.url.path}")
        raise HTTPException(status_code=401, detail="Login required")
