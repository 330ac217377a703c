"""Exception types raised by the export pipeline."""

from typing import Optional


class ExportError(Exception):
    """Base class for export pipeline errors."""


class ConfigurationError(ExportError):
    """Required configuration is missing or invalid. Fatal for a run."""


class SourceCursorError(ExportError):
    """The match id cursor could not be opened or read. Fatal for a run."""


class UpstreamError(ExportError):
    """Non-2xx response from the upstream telemetry API.

    Retryability is decided by ``status_code``: 429, 502, 503 and 504 are retried.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
