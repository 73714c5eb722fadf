"""Domain-level exceptions for the chat relay.

Every error carries the HTTP status and the ``type`` string that ends up in the
``{"error": {"message", "type"}}`` response body.
"""


class RelayError(Exception):
    """Base class for errors that map onto a relay error response."""

    status_code = 500
    error_type = "UnknownError"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_type: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_type is not None:
            self.error_type = error_type


class ValidationError(RelayError):
    """Raised when a required request field is missing or invalid."""

    status_code = 400
    error_type = "ValidationError"


class MessageQuotaExceeded(RelayError):
    """Raised when the local message quota is exhausted for every usable provider."""

    status_code = 429
    error_type = "MessageQuotaExceeded"


class ProviderRateLimitError(RelayError):
    """Raised when a provider reports that it is rate limiting the relay."""

    status_code = 429
    error_type = "RateLimitError"

    def __init__(self, message: str, *, provider: str) -> None:
        super().__init__(message)
        self.provider = provider


class UpstreamError(RelayError):
    """Any other provider or transport failure, keeping the upstream status and name."""


class ProviderTimeoutError(RelayError):
    status_code = 504
    error_type = "ProviderTimeout"


class QuotaStoreConflict(RelayError):
    """Raised when a quota update keeps losing compare-and-set races."""

    status_code = 503
    error_type = "QuotaStoreConflict"


class ClientDisconnected(RelayError):
    status_code = 499
    error_type = "ClientDisconnected"
