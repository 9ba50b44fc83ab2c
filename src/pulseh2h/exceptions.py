"""Exception types raised across the ingestion pipeline."""


class PulseH2HError(Exception):
    """Base class for all pulseh2h errors."""


class RosterUnavailableError(PulseH2HError):
    """The community roster has not been loaded or its source failed."""


class UpstreamError(PulseH2HError):
    """An SC2 Pulse request failed after all retry attempts."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PayloadError(PulseH2HError):
    """An upstream match entry did not match the expected shape."""
