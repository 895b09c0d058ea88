"""Provider-agnostic exceptions wrapping cloud SDK failures."""

from __future__ import annotations


class ProviderError(Exception):
    """Base class for cloud provider failures."""


class ProviderCredentialsError(ProviderError):
    """Credentials are missing or could not be loaded."""


class ProviderConnectionError(ProviderError):
    """The provider endpoint could not be reached."""


class ProviderAPIError(ProviderError):
    """The provider API rejected a request.

    Parameters
    ----------
    message : str
        Human-readable error description
    error_code : str | None
        Provider error code (e.g. ``UnauthorizedOperation``)
    operation : str | None
        API operation that failed
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.operation = operation
