"""
Template configuration for Admin UI.

Provides a shared Jinja2Templates instance with the correct path and
the formatting filters used by the pages.
"""

from pathlib import Path

from fastapi.templating import Jinja2Templates

from src.core.utils.time import format_job_duration, format_uptime

# Get absolute path to templates directory
_templates_dir = Path(__file__).parent / "templates"
templates = Jinja2Templates(directory=str(_templates_dir))


def format_timestamp(value) -> str:
    """Render a datetime as "2006-01-02 15:04:05", or "-" when unknown."""
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M:%S")


def status_class(status: str) -> str:
    """Map a job status to a CSS class."""
    status = (status or "").lower()
    if status in ("success", "passed", "completed"):
        return "ok"
    if status in ("failed", "error"):
        return "bad"
    if status in ("running", "pending"):
        return "warn"
    if status in ("canceled", "skipped"):
        return "muted"
    return "unknown"


templates.env.filters["job_duration"] = format_job_duration
templates.env.filters["uptime"] = format_uptime
templates.env.filters["timestamp"] = format_timestamp
templates.env.filters["status_class"] = status_class
