"""Exceptions for the Tailscale provider."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import APIErrorData
    from .schema import Diagnostic


class TailscaleError(Exception):
    """Generic Tailscale exception."""


class TailscaleConnectionError(TailscaleError):
    """Tailscale connection exception."""


class TailscaleAPIError(TailscaleError):
    """The Tailscale API answered with a non-successful status."""

    def __init__(
        self,
        message: str,
        status: int,
        data: list[APIErrorData] | None = None,
    ) -> None:
        """Initialize the API error.

        Args:
        ----
            message: Message returned by the Tailscale API.
            status: HTTP status code of the response.
            data: Per-user error details returned by the Tailscale API.

        """
        super().__init__(message)
        self.message = message
        self.status = status
        self.data = data or []

    def __str__(self) -> str:
        """Return the message the same way the API console shows it."""
        return f"{self.message} ({self.status})"


class TailscaleAuthenticationError(TailscaleAPIError):
    """Tailscale authentication exception."""


class TailscaleNotFoundError(TailscaleAPIError):
    """The requested object does not exist."""


class TailscalePreconditionFailedError(TailscaleAPIError):
    """An ETag precondition was not met."""


class ProviderError(Exception):
    """Generic provider exception."""


class ProviderConfigurationError(ProviderError):
    """The provider configuration is invalid."""


class ValidationError(ProviderError):
    """An attribute value failed validation."""

    def __init__(self, message: str, path: tuple[Any, ...] = ()) -> None:
        """Initialize the validation error."""
        super().__init__(message)
        self.path = path


class DiagnosticError(ProviderError):
    """A lifecycle operation failed with one or more diagnostics."""

    def __init__(self, diagnostics: list[Diagnostic]) -> None:
        """Initialize with the diagnostics that describe the failure."""
        super().__init__(diagnostics[0].summary if diagnostics else "unknown error")
        self.diagnostics = diagnostics
