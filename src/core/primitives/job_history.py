"""
Job history reconstruction.

Folds classified log lines into one Job per job id, then bounds and
orders the result for display.

A job's fields arrive piecemeal across many lines, possibly out of
order. Every field follows the same merge rule: an incoming value only
replaces the stored one when it is informative (non-empty string,
non-None timestamp, non-zero number). Later informative values win.
"""

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta

from src.core.models.runner import Job
from src.core.primitives.log_classifier import JobEvent, classify_line
from src.core.utils.time import now_local

logger = logging.getLogger(__name__)

# Job fields copied from events by the informativeness rule.
# duration is derived separately, see _update_duration.
MERGED_FIELDS = ("status", "project", "runner_name", "started", "finished", "exit_code")


def is_informative(value: object) -> bool:
    """
    Check whether a field value is meaningful enough to overwrite another.

    Args:
        value: A field value from an event.

    Returns:
        False for None, empty strings and numeric zero; True otherwise.
    """
    if value is None:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (int, float)):
        return value != 0
    return True


def _update_duration(job: Job, event: JobEvent) -> None:
    if job.started is not None and job.finished is not None:
        job.duration = max(job.finished - job.started, timedelta(0))
    elif event.duration is not None:
        job.duration = event.duration


def merge_event(job: Job, event: JobEvent) -> None:
    """
    Merge an event into an existing job record in place.

    Args:
        job: Record to update. Its id must equal event.job_id.
        event: Classified log event.
    """
    for name in MERGED_FIELDS:
        value = getattr(event, name)
        if is_informative(value):
            setattr(job, name, value)

    _update_duration(job, event)


class JobAggregator:
    """
    Builds a job-id keyed mapping from log lines in receipt order.

    One aggregator is one aggregation pass; it is not shared between
    refreshes and performs no I/O.
    """

    def __init__(self, limit: int | None = None) -> None:
        """
        Args:
            limit: Stop consuming lines once this many distinct jobs are
                known. None means no bound. A bound is the stop-early
                variant for newest-first input; lines in written order
                need None so later lines still reach earlier jobs.
        """
        self.limit = limit
        self.jobs: dict[int, Job] = {}

    @property
    def is_full(self) -> bool:
        """True once the mapping reached the size bound."""
        return self.limit is not None and len(self.jobs) >= self.limit

    def apply(self, event: JobEvent) -> Job:
        """Merge one event, creating the job record on first sight."""
        job = self.jobs.get(event.job_id)
        if job is None:
            job = Job(id=event.job_id)
            self.jobs[event.job_id] = job
        merge_event(job, event)
        return job

    def feed(self, line: str, now: datetime | None = None) -> Job | None:
        """
        Classify and merge a single line.

        Returns:
            The updated job, or None if the line was not job-related.
        """
        event = classify_line(line, now=now)
        if event is None:
            return None
        return self.apply(event)

    def consume(self, lines: Iterable[str], now: datetime | None = None) -> dict[int, Job]:
        """
        Feed lines until they run out or the size bound is reached.

        Args:
            lines: Log lines in the order they were received.
            now: Classification time shared by every line in this pass.

        Returns:
            The job-id keyed mapping.
        """
        if now is None:
            now = now_local()

        if self.is_full:
            return self.jobs

        for line in lines:
            self.feed(line, now=now)
            if self.is_full:
                break

        return self.jobs


def _sort_key(job: Job) -> tuple[datetime, int]:
    # Unknown start times sort as the earliest instant; -id keeps ties
    # in ascending id order under reverse=True
    return (job.started or datetime.min, -job.id)


def assemble_history(jobs: Mapping[int, Job], limit: int) -> list[Job]:
    """
    Order jobs most recently started first and keep the first `limit`.

    Jobs without a start time go last. Ties are broken by ascending id,
    so identical input always yields identical output.

    Args:
        jobs: Job-id keyed mapping from an aggregation pass.
        limit: Maximum number of jobs to return.

    Returns:
        At most `limit` jobs.
    """
    if limit <= 0:
        return []

    ordered = sorted(jobs.values(), key=_sort_key, reverse=True)
    return ordered[:limit]


def build_job_history(
    lines: Iterable[str],
    limit: int,
    now: datetime | None = None,
    bound: int | None = None,
) -> list[Job]:
    """
    Run a full aggregation pass over log lines.

    With the default `bound` of None every line is folded, which is what
    a log read in written order needs: a job's last line can come after
    lines of newer jobs. A bound stops the pass early once that many
    distinct jobs are known, which only suits newest-first input.

    Args:
        lines: Log lines in the order they were received.
        limit: Maximum number of jobs to return.
        now: Classification time. Defaults to the current local time.
        bound: Stop after this many distinct jobs; None folds everything.

    Returns:
        Ordered list of at most `limit` jobs.
    """
    if limit <= 0:
        return []

    aggregator = JobAggregator(limit=bound)
    jobs = aggregator.consume(lines, now=now)
    logger.debug(f"Aggregated {len(jobs)} jobs from log window (limit {limit})")
    return assemble_history(jobs, limit)
