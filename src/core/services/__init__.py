"""
Service layer for the runner dashboard.

This module exports the runner agent service.
"""

from src.core.services.runner import RunnerService, get_runner_service, set_runner_service

__all__ = ["RunnerService", "get_runner_service", "set_runner_service"]
