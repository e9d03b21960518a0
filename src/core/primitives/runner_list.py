"""
Parser for the runner listing printed by `gitlab-runner list`.

Each field is extracted on its own, so lines with fields in any order,
or with some fields missing, still produce a runner.
"""

import re

from src.core.models.runner import Runner

BANNER_PREFIX = "Listing"
RUNNER_ID_LENGTH = 8

TOKEN_RE = re.compile(r"\bToken\s*=\s*(\S+)")
NAME_RE = re.compile(r"\bName\s*=\s*(.+?)(?=\s+\w+\s*=|$)")
EXECUTOR_RE = re.compile(r"\bExecutor\s*=\s*(\S+)")
# `gitlab-runner list` prints the name as a bare first column
LEADING_NAME_RE = re.compile(r"^([^=\s][^=]*?)\s+\w+\s*=")


def parse_runner_line(line: str) -> Runner | None:
    """
    Parse one listing line into a Runner.

    Args:
        line: Stripped listing line.

    Returns:
        Runner, or None if the line has neither a name nor a token.
    """
    runner = Runner()

    if match := TOKEN_RE.search(line):
        runner.token = match.group(1)
        runner.id = runner.token[:RUNNER_ID_LENGTH]

    if match := NAME_RE.search(line):
        runner.name = match.group(1).strip()
    elif runner.token and (match := LEADING_NAME_RE.match(line)):
        runner.name = match.group(1).strip()

    if match := EXECUTOR_RE.search(line):
        runner.executor = match.group(1)

    if not runner.name and not runner.token:
        return None

    return runner


def parse_runner_list(output: str) -> list[Runner]:
    """
    Parse the full listing text.

    Blank lines and the "Listing configured runners" banner are skipped.

    Returns:
        Runners in the order they appear in the listing.
    """
    runners = []
    for line in output.split("\n"):
        line = line.strip()
        if not line or line.startswith(BANNER_PREFIX):
            continue

        runner = parse_runner_line(line)
        if runner is not None:
            runners.append(runner)

    return runners
