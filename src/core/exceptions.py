"""
Dashboard exceptions.

Services and config managers raise these so the web layer can turn
them into messages without knowing which command failed.
"""


class RunnerDashboardError(Exception):
    """Base exception for all dashboard errors."""

    pass


class RetrievalError(RunnerDashboardError):
    """Neither the primary nor the fallback text source could be read."""

    pass


class RestartError(RunnerDashboardError):
    """The agent service could not be restarted."""

    pass


class RunnerNotFoundError(RunnerDashboardError):
    """No runner with the requested name exists."""

    pass


class ConfigError(RunnerDashboardError):
    """Config file cannot be read, parsed or written, or none is loaded."""

    pass


class ConfigValidationError(ConfigError, ValueError):
    """A config value is out of range. Nothing was changed."""

    pass
