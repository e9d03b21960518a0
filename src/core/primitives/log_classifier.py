"""
Job log line classifier.

Recognizes the three job-related line shapes the runner writes to its
log and turns each matching line into a JobEvent:

- start:      "... job=42 ... project=7 ... runner=build-1"
- status:     "... job=42 ... status=success"
- completion: "... job=42 ... duration=12.5s"

Recognizers are tried in that order and the first match wins. Most log
lines match none of them and are ignored.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from src.core.utils.time import now_local, parse_syslog_timestamp

JOB_START_RE = re.compile(r"job=(\d+).*project=(\d+).*runner=([a-zA-Z0-9_-]+)")
JOB_STATUS_RE = re.compile(r"job=(\d+).*status=(\w+)")
JOB_FINISH_RE = re.compile(r"job=(\d+).*duration=([0-9.]+)s")


class EventKind(str, Enum):
    """Shape of a recognized job log line."""

    START = "start"
    STATUS = "status"
    COMPLETION = "completion"


@dataclass
class JobEvent:
    """
    Typed fields extracted from one log line.

    Fields the line does not carry keep their uninformative defaults.
    """

    kind: EventKind
    job_id: int
    status: str = ""
    project: str = ""
    runner_name: str = ""
    started: datetime | None = None
    finished: datetime | None = None
    duration: timedelta | None = None
    exit_code: int = 0


def _parse_job_id(raw: str) -> int | None:
    try:
        return int(raw)
    except ValueError:
        return None


def _parse_start(line: str, now: datetime) -> JobEvent | None:
    match = JOB_START_RE.search(line)
    if not match:
        return None

    job_id = _parse_job_id(match.group(1))
    if job_id is None:
        return None

    return JobEvent(
        kind=EventKind.START,
        job_id=job_id,
        status="running",
        project=match.group(2),
        runner_name=match.group(3),
        started=parse_syslog_timestamp(line, now.year),
    )


def _parse_status(line: str, now: datetime) -> JobEvent | None:
    match = JOB_STATUS_RE.search(line)
    if not match:
        return None

    job_id = _parse_job_id(match.group(1))
    if job_id is None:
        return None

    return JobEvent(kind=EventKind.STATUS, job_id=job_id, status=match.group(2))


def _parse_completion(line: str, now: datetime) -> JobEvent | None:
    match = JOB_FINISH_RE.search(line)
    if not match:
        return None

    job_id = _parse_job_id(match.group(1))
    if job_id is None:
        return None

    event = JobEvent(kind=EventKind.COMPLETION, job_id=job_id, status="completed")

    # "1.2.3s" matches the pattern but is not a number; keep the event
    # and leave the timing fields unset.
    try:
        seconds = float(match.group(2))
    except ValueError:
        return event

    # The line only carries elapsed time, so the finish time is when we saw it
    event.duration = timedelta(seconds=seconds)
    event.finished = now
    return event


RECOGNIZERS = (_parse_start, _parse_status, _parse_completion)


def classify_line(line: str, now: datetime | None = None) -> JobEvent | None:
    """
    Classify a single log line.

    Args:
        line: Raw log line.
        now: Classification time. Used as the finish time of completion
            events and as the year source for start timestamps.
            Defaults to the current local time.

    Returns:
        The extracted event, or None if the line is not job-related.
    """
    if now is None:
        now = now_local()

    for recognizer in RECOGNIZERS:
        event = recognizer(line, now)
        if event is not None:
            return event

    return None
