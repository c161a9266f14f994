from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .contracts import ComparisonResult


class ProviderError(Exception):
    """Base error for provider and comparison failures."""


class ConfigurationError(ProviderError):
    """A provider configuration is missing a field needed at request time."""


class AuthenticationError(ProviderError):
    pass


class RateLimitError(ProviderError):
    def __init__(self, retry_after_seconds: int | None = None, message: str = "Rate limited"):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class UpstreamProtocolError(ProviderError):
    """Network failure, non-success status, or unexpected response shape."""


class ComparisonInputError(ProviderError):
    """Empty prompt or no enabled configuration; raised before any network call."""


class NoSuccessfulResponsesError(ProviderError):
    def __init__(self, result: ComparisonResult, message: str = "No provider returned a successful response."):
        super().__init__(message)
        self.result = result

    @property
    def errors(self) -> list[str]:
        return list(self.result.errors or [])


class ConfigStoreError(ProviderError):
    """Stored provider configuration could not be read or decrypted."""
