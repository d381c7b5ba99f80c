"""Error taxonomy shared by provider adapters and the import orchestrator."""

from __future__ import annotations


class ProviderError(RuntimeError):
    def __init__(self, message: str, *, provider: str | None = None, status: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class AuthError(ProviderError):
    """Credentials were rejected or have expired."""


class NotFoundError(ProviderError):
    """The requested league/season does not exist for these credentials."""


class RateLimitError(ProviderError):
    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status: int | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message, provider=provider, status=status)
        self.retry_after = retry_after


class FetchError(ProviderError):
    """Transport or parse failure for one provider resource."""


class PersistenceError(RuntimeError):
    pass
