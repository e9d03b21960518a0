"""
Admin Web UI for the runner agent.

Provides a simple HTMX-based interface for inspecting runners, logs,
system status and job history, and for editing config.toml.
"""

from src.admin.app import create_admin_app

__all__ = ["create_admin_app"]
