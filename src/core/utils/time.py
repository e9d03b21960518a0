"""Time utilities for log timestamps and human-readable durations."""

import re
from datetime import UTC, datetime, timedelta

# Fixed table so parsing does not depend on the process locale
MONTHS = {
    "Jan": 1,
    "Feb": 2,
    "Mar": 3,
    "Apr": 4,
    "May": 5,
    "Jun": 6,
    "Jul": 7,
    "Aug": 8,
    "Sep": 9,
    "Oct": 10,
    "Nov": 11,
    "Dec": 12,
}

SYSLOG_TIMESTAMP_RE = re.compile(
    r"^\s*(?P<month>[A-Z][a-z]{2})\s+(?P<day>\d{1,2})\s+"
    r"(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})(?!\d)"
)

SYSTEMD_TIMESTAMP_FORMAT = "%a %Y-%m-%d %H:%M:%S"


def now_local() -> datetime:
    """
    Get current local time as a naive datetime.

    Journal timestamps are written in local time without a zone, so
    everything compared against them must be local and naive too.

    Returns:
        datetime: Current local time without timezone information.
    """
    return datetime.now()


def parse_syslog_timestamp(line: str, year: int) -> datetime | None:
    """
    Parse a leading "Jan 02 15:04:05" timestamp from a log line.

    The syslog format carries no year, so the caller supplies one.
    Lines written in December and read in January end up a year late.

    Args:
        line: Raw log line.
        year: Year to attach to the parsed timestamp.

    Returns:
        Parsed naive datetime, or None if the line does not start with
        a valid timestamp.
    """
    match = SYSLOG_TIMESTAMP_RE.match(line)
    if not match:
        return None

    month = MONTHS.get(match.group("month"))
    if month is None:
        return None

    try:
        return datetime(
            year,
            month,
            int(match.group("day")),
            int(match.group("hour")),
            int(match.group("minute")),
            int(match.group("second")),
        )
    except ValueError:
        return None


def parse_systemd_timestamp(value: str) -> datetime | None:
    """
    Parse a systemd timestamp such as "Mon 2024-01-01 12:34:56 UTC".

    UTC/GMT timestamps are converted to local time; other zone names are
    assumed to already be local.

    Returns:
        Naive local datetime, or None if the value cannot be parsed.
    """
    parts = value.strip().split()
    if len(parts) < 3:
        return None

    zone = parts[3] if len(parts) > 3 else ""
    try:
        parsed = datetime.strptime(" ".join(parts[:3]), SYSTEMD_TIMESTAMP_FORMAT)
    except ValueError:
        return None

    if zone in ("UTC", "GMT"):
        return parsed.replace(tzinfo=UTC).astimezone().replace(tzinfo=None)
    return parsed


def format_job_duration(duration: timedelta | None) -> str:
    """Format a job duration as "42s", "3m 5s" or "2h 10m"."""
    if duration is None or duration <= timedelta(0):
        return "-"

    seconds = int(duration.total_seconds())
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds // 3600}h {(seconds // 60) % 60}m"


def format_uptime(uptime: timedelta) -> str:
    """Format a service uptime as "1d 2h 3m", "2h 3m" or "3m"."""
    total_minutes = int(uptime.total_seconds()) // 60
    days, remainder = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(remainder, 60)

    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
