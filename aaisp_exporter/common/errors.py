"""Domain errors and failure typing."""


class ExporterError(Exception):
    """Base class for exporter failures."""

    error_code = "EXPORTER_ERROR"


class ConfigError(ExporterError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class ChaosError(ExporterError):
    """Raised when a CHAOS API call fails; recoverable per scrape."""

    error_code = "CHAOS_ERROR"


class TransportError(ChaosError):
    """Raised when the request cannot complete or the body cannot be read."""

    error_code = "TRANSPORT_ERROR"


class UpstreamStatusError(ChaosError):
    """Raised for any HTTP status other than 200."""

    error_code = "UPSTREAM_STATUS_ERROR"

    def __init__(self, status_code: int, upstream_error: str | None = None) -> None:
        self.status_code = status_code
        self.upstream_error = upstream_error
        message = f"bad response code: {status_code}"
        if upstream_error:
            message = f"{message}: {upstream_error}"
        super().__init__(message)


class DecodeError(ChaosError):
    """Raised when a response body does not match the expected envelope."""

    error_code = "DECODE_ERROR"


class UpstreamReportedError(ChaosError):
    """Raised when the API answers 200 with a non-empty error field."""

    error_code = "UPSTREAM_REPORTED_ERROR"
