"""
Primitives: pure text-to-record building blocks.

Each primitive does ONE thing well and performs no I/O.
Services feed them the raw output of system commands.
"""

from src.core.primitives.job_history import (
    JobAggregator,
    assemble_history,
    build_job_history,
    is_informative,
    merge_event,
)
from src.core.primitives.log_classifier import EventKind, JobEvent, classify_line
from src.core.primitives.runner_list import parse_runner_line, parse_runner_list

__all__ = [
    "EventKind",
    "JobAggregator",
    "JobEvent",
    "assemble_history",
    "build_job_history",
    "classify_line",
    "is_informative",
    "merge_event",
    "parse_runner_line",
    "parse_runner_list",
]
