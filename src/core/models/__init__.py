"""
Data models for the Runner Dashboard.

This module exports the in-memory records shared by services and views.
"""

from src.core.models.runner import Job, Runner, SystemStatus

__all__ = [
    "Job",
    "Runner",
    "SystemStatus",
]
