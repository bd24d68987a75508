"""
FoxTab - Errors
Every failure a scan can end with. All of them stay local to one scan.
"""


class FoxTabError(Exception):
    """Base class for FoxTab errors."""


class ConfigurationError(FoxTabError, ValueError):
    """Scan options that must not reach the scanner (e.g. sxss without a trigger URL)."""


class RequestParseError(FoxTabError, ValueError):
    """A raw HTTP request that cannot be turned into a RequestContext."""


class BinaryNotFound(FoxTabError):
    """The scanner binary failed its pre-flight health check."""

    def __init__(self, path: str):
        super().__init__(f"Dalfox not found at: {path}")
        self.path = path


class LaunchFailure(FoxTabError):
    """The OS refused to create the scanner process."""


class StreamReadError(FoxTabError):
    """Reading scanner output failed for a reason other than cancellation."""
