"""Declarative resources and data sources for the Tailscale API."""

from .exceptions import (
    DiagnosticError,
    ProviderConfigurationError,
    ProviderError,
    TailscaleAPIError,
    TailscaleAuthenticationError,
    TailscaleConnectionError,
    TailscaleError,
    TailscaleNotFoundError,
    TailscalePreconditionFailedError,
    ValidationError,
)
from .models import Device, Devices, Key, User, Webhook
from .policy import Policy, PolicyError
from .provider import Provider, ResourceState
from .schema import Diagnostic, Severity
from .settings import ProviderSettings
from .storage import InMemoryTokenStorage, TokenStorage
from .tailscale import Tailscale

__all__ = [
    "Device",
    "Devices",
    "Diagnostic",
    "DiagnosticError",
    "InMemoryTokenStorage",
    "Key",
    "Policy",
    "PolicyError",
    "Provider",
    "ProviderConfigurationError",
    "ProviderError",
    "ProviderSettings",
    "ResourceState",
    "Severity",
    "Tailscale",
    "TailscaleAPIError",
    "TailscaleAuthenticationError",
    "TailscaleConnectionError",
    "TailscaleError",
    "TailscaleNotFoundError",
    "TailscalePreconditionFailedError",
    "TokenStorage",
    "User",
    "Webhook",
]
