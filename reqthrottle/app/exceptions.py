"""Custom exceptions for the throttling service."""


class ThrottleException(Exception):
    """Base class for service exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Throttle error"):
        self.message = message
        super().__init__(message)


class StorageUnavailableError(ThrottleException):
    """Raised when the counter/block storage cannot be reached.

    Covers connection failures, timeouts and medium-level faults. This is
    the only failure kind the rate limiting core produces; the decision
    engine turns it into a rejection rather than letting it escape.

    Maps to HTTP 503 Service Unavailable.
    """
    status_code = 503

    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        self.detail = detail
        message = f"Storage unavailable during {operation}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ConfigurationError(ThrottleException):
    """Raised when the service is constructed with unusable settings.

    Maps to HTTP 500 Internal Server Error.
    """
    status_code = 500

    def __init__(self, detail: str = "Invalid configuration"):
        self.detail = detail
        super().__init__(detail)
