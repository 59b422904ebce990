"""Exception types for the host monitor."""


class DashmaMonitorError(Exception):
    """Base class for host monitor errors."""


class ConfigError(DashmaMonitorError):
    """The service configuration file could not be read or validated."""
