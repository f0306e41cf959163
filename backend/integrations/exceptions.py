"""Typed exception hierarchy for external integration errors.

Provides structured exceptions for differentiated error handling
(missing configuration vs upstream failures vs rejected tokens vs
local write failures).
"""


class IntegrationError(Exception):
    """Base exception for all integration errors.

    Carries the provider name so callers can identify which upstream failed.
    """

    def __init__(self, message: str, provider_name: str = "Plaid"):
        self.provider_name = provider_name
        super().__init__(message)


class ConfigurationError(IntegrationError):
    """A required server-side credential is missing.

    Raised before any network call is attempted.
    """

    pass


class UpstreamError(IntegrationError):
    """Non-2xx, malformed or timed-out response from an upstream API."""

    def __init__(
        self,
        message: str,
        provider_name: str = "Plaid",
        status_code: int | None = None,
        body: str | None = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message, provider_name)

    @property
    def retriable(self) -> bool:
        """429 (rate limit) and 5xx errors are generally retriable by the user."""
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class ExchangeError(IntegrationError):
    """The public token was invalid, expired or already used."""

    def __init__(
        self,
        message: str,
        provider_name: str = "Plaid",
        error_code: str | None = None,
    ):
        self.error_code = error_code
        super().__init__(message, provider_name)


class PersistenceError(IntegrationError):
    """A local database write failed after a successful upstream step."""

    pass
