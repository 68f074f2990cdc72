"""Tests for the provider configuration."""

import pytest

from tailscale_provider import Provider, ProviderSettings, Tailscale
from tailscale_provider.const import DEFAULT_USER_AGENT
from tailscale_provider.exceptions import ProviderConfigurationError

ENVIRONMENT = (
    "TAILSCALE_API_KEY",
    "TAILSCALE_OAUTH_CLIENT_ID",
    "OAUTH_CLIENT_ID",
    "TAILSCALE_OAUTH_CLIENT_SECRET",
    "OAUTH_CLIENT_SECRET",
    "TAILSCALE_TAILNET",
    "TAILSCALE_BASE_URL",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep credentials of the machine running the tests out."""
    for name in ENVIRONMENT:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    """Test the defaults of the provider settings."""
    settings = ProviderSettings(api_key="abc")
    assert settings.tailnet == "-"
    assert settings.base_url == "https://api.tailscale.com"
    assert settings.request_timeout == 60
    assert settings.effective_user_agent == DEFAULT_USER_AGENT
    assert not settings.uses_oauth
    settings.check_credentials()


def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test settings left out are read from the environment."""
    monkeypatch.setenv("TAILSCALE_TAILNET", "example.com")
    monkeypatch.setenv("OAUTH_CLIENT_ID", "client")
    monkeypatch.setenv("TAILSCALE_OAUTH_CLIENT_SECRET", "secret")
    monkeypatch.setenv("TAILSCALE_BASE_URL", "https://tailscale.example.com")

    settings = ProviderSettings()
    assert settings.tailnet == "example.com"
    assert settings.oauth_client_id == "client"
    assert settings.oauth_client_secret.get_secret_value() == "secret"
    assert settings.base_url == "https://tailscale.example.com"
    assert settings.uses_oauth


def test_arguments_take_precedence(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test provider arguments win over the environment."""
    monkeypatch.setenv("TAILSCALE_TAILNET", "example.com")
    settings = ProviderSettings(api_key="abc", tailnet="frenck")
    assert settings.tailnet == "frenck"


@pytest.mark.parametrize(
    ("config", "message"),
    [
        ({}, "credentials are empty"),
        ({"api_key": "abc", "oauth_client_id": "id"}, "credentials are conflicting"),
        ({"api_key": "abc", "oauth_client_secret": "s"}, "credentials are conflicting"),
        ({"oauth_client_secret": "s"}, "'oauth_client_id' is empty"),
        ({"oauth_client_id": "id"}, "'oauth_client_secret' is empty"),
        ({"api_key": "abc", "tailnet": ""}, "'tailnet' is empty"),
    ],
)
def test_invalid_credentials(config: dict[str, str], message: str) -> None:
    """Test missing, incomplete and conflicting credentials are rejected."""
    with pytest.raises(ProviderConfigurationError, match=message):
        ProviderSettings(**config).check_credentials()


def test_configure_api_key() -> None:
    """Test configuring the provider with an API key."""
    provider = Provider()
    client = provider.configure(api_key="abc", tailnet="frenck", user_agent="me/1")
    assert client.api_key == "abc"
    assert client.oauth_client_id is None
    assert client.tailnet == "frenck"
    assert client.user_agent == "me/1"
    assert client.request_timeout == 60
    assert provider.client is client


def test_configure_fractional_timeout() -> None:
    """Test a fractional request timeout reaches the client unchanged."""
    client = Provider().configure(api_key="abc", request_timeout=2.5)
    assert client.request_timeout == 2.5
    assert Tailscale().request_timeout == 8.0


def test_configure_oauth() -> None:
    """Test configuring the provider with OAuth client credentials."""
    provider = Provider()
    client = provider.configure(
        oauth_client_id="client", oauth_client_secret="secret", scopes=["dns"]
    )
    assert client.api_key is None
    assert client.oauth_client_id == "client"
    assert client.oauth_client_secret == "secret"
    assert client.oauth_scopes == ["dns"]


@pytest.mark.parametrize(
    ("config", "message"),
    [
        ({"api_key": "abc", "base_url": "not a url"}, "could not parse baseURL"),
        ({"api_key": "abc", "request_timeout": 0}, "greater than 0"),
        ({}, "credentials are empty"),
    ],
)
def test_configure_invalid(config: dict[str, object], message: str) -> None:
    """Test invalid provider configurations are reported."""
    provider = Provider()
    with pytest.raises(ProviderConfigurationError, match=message):
        provider.configure(**config)
    assert provider.client is None
